import html
import logging
from urllib.parse import urlencode
from typing import Optional
from supabase import Client
from app.config import settings

logger = logging.getLogger(__name__)

CONFIRM_CURRENT_EMAIL_TYPE = "EmailChangeConfirmCurrent"
CONFIRM_CURRENT_SUBJECT = "Confirm your email change"
CONFIRM_NEW_EMAIL_TYPE = "EmailChangeConfirmNew"
CONFIRM_NEW_SUBJECT = "Confirm your new email address"


def build_confirm_url(token: str, base_url: Optional[str] = None) -> str:
    """Link sent to the current address; the frontend posts the token back to /email-change/verify."""
    base = (base_url or settings.get_site_base_url()).rstrip("/")
    query = urlencode({"step": "confirm_current", "token": token})
    return f"{base}/change-email?{query}"


def build_change_complete_url(base_url: Optional[str] = None) -> str:
    """Where Supabase sends the browser once the new address is confirmed."""
    base = (base_url or settings.get_site_base_url()).rstrip("/")
    return f"{base}/change-email"


def render_confirm_current_email(new_email: str, confirm_url: str, ttl_seconds: int) -> str:
    hours = max(1, ttl_seconds // 3600)
    expiry = f"{hours} hour" if hours == 1 else f"{hours} hours"
    return f"""
      <p>You requested to change your CoreflowHR sign-in email to <strong>{html.escape(new_email)}</strong>.</p>
      <p><a href="{html.escape(confirm_url, quote=True)}" style="display:inline-block; padding:10px 20px; background:#111; color:#fff; text-decoration:none; border-radius:8px;">Confirm and send link to new email</a></p>
      <p>If you didn't request this, you can ignore this email.</p>
      <p>This link expires in {expiry}.</p>
    """


def render_confirm_new_email(new_email: str, action_link: str) -> str:
    return f"""
      <p>Confirm <strong>{html.escape(new_email)}</strong> as your new CoreflowHR sign-in email.</p>
      <p><a href="{html.escape(action_link, quote=True)}" style="display:inline-block; padding:10px 20px; background:#111; color:#fff; text-decoration:none; border-radius:8px;">Confirm new email</a></p>
      <p>Your sign-in email changes only after you click this link.</p>
      <p>If you didn't request this, you can ignore this email.</p>
    """


def send_email(supabase: Client, to: str, subject: str, content: str, email_type: str) -> None:
    """Deliver mail through the send-email Edge Function. Raises on delivery failure."""
    supabase.functions.invoke(
        settings.send_email_function,
        invoke_options={
            "body": {
                "to": to,
                "subject": subject,
                "content": content,
                "emailType": email_type,
            }
        },
    )
    logger.debug(f"{email_type} email handed to {settings.send_email_function}")
