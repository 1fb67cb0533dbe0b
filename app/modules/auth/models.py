# Supabase Auth
# This module uses Supabase's built-in authentication system
# No custom tables are required - Supabase Auth handles:
# - User registration and login (auth.users table)
# - Session JWT issuance and validation
# - The sign-in email address itself

"""
Supabase Auth calls used here:
- auth.get_user(jwt=...) - Resolve the caller from a session access token
- auth.admin.generate_link(type="email_change_new") - Start an email change that
  completes when the new address opens the link (service role only)

Email-change confirmation tokens are NOT Supabase tokens; they are signed
by this service (see app.core.signed_token) with EMAIL_CHANGE_SECRET.
"""
