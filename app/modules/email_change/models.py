# Supabase table: email_change_redemptions
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

email_change_redemptions:
- jti: text (primary key) - nonce claim of a confirmed email-change token
- user_id: uuid (not null, references auth.users.id)
- new_email: text (not null)
- expires_at: timestamp (not null) - token expiry; rows past it can be purged
- created_at: timestamp (default: now())

Issued tokens are never stored. A row is written only when a token is used
to confirm a change, so a second confirmation with the same link hits the
primary key and is refused.
"""
