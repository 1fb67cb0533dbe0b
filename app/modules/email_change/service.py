import logging
import secrets
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from email_validator import validate_email, EmailNotValidError
from fastapi import HTTPException
from pydantic import ValidationError
from supabase import Client

from app.config import settings
from app.core import signed_token
from app.core.signed_token import TokenError, TokenRejection, MalformedTokenError
from app.modules.auth.service import AuthService
from app.modules.email_change import mailer
from app.modules.email_change.schemas import (
    EmailChangeClaims, EmailChangeRequestResponse, EmailChangeResult
)

logger = logging.getLogger(__name__)

# Returned for every rejection kind
INVALID_LINK_DETAIL = "Invalid or expired link"

_LOUD_REJECTIONS = (TokenRejection.BAD_SIGNATURE, TokenRejection.SUBJECT_MISMATCH)


class EmailChangeService:
    def __init__(
        self,
        supabase: Optional[Client],
        secret: bytes,
        auth_service: Optional[AuthService] = None,
        ttl_seconds: Optional[int] = None,
        max_token_length: Optional[int] = None,
    ):
        self.supabase = supabase
        self.secret = secret
        self.auth_service = auth_service
        self.ttl_seconds = ttl_seconds or settings.email_change_ttl_seconds
        self.max_token_length = max_token_length or settings.email_change_max_token_length

    def request_change(self, current_user: Dict[str, Any], new_email: str) -> EmailChangeRequestResponse:
        """Issue a token for the caller and mail the confirmation link to their current address"""
        current_email = (current_user.get("email") or "").strip()
        if not current_email:
            raise HTTPException(status_code=401, detail="Unauthorized")

        normalized = normalize_email(new_email)
        if normalized is None:
            raise HTTPException(status_code=400, detail="Valid new email is required")
        if normalized == current_email.lower():
            raise HTTPException(status_code=400, detail="This is already your current email")

        issued_at = int(time.time())
        token = signed_token.issue(
            current_user["id"],
            {"newEmail": normalized, "iat": issued_at, "jti": secrets.token_urlsafe(16)},
            self.ttl_seconds,
            self.secret,
            now=issued_at,
        )
        confirm_url = mailer.build_confirm_url(token)
        content = mailer.render_confirm_current_email(normalized, confirm_url, self.ttl_seconds)

        try:
            mailer.send_email(
                self.supabase,
                to=current_email,
                subject=mailer.CONFIRM_CURRENT_SUBJECT,
                content=content,
                email_type=mailer.CONFIRM_CURRENT_EMAIL_TYPE,
            )
        except Exception as e:
            logger.error(f"send-email invoke error for user {current_user['id']}: {e}")
            raise HTTPException(status_code=500, detail="Failed to send email")

        logger.info(f"Email change requested by user {current_user['id']} (token {signed_token.fingerprint(token)})")
        return EmailChangeRequestResponse(success=True)

    def verify_token(self, current_user: Dict[str, Any], token: str) -> EmailChangeClaims:
        """Check a confirmation token and bind it to the caller. No side effects."""
        token = (token or "").strip()
        if not token:
            raise HTTPException(status_code=400, detail="Token is required")

        user_id = current_user["id"]
        try:
            claims = signed_token.verify(
                token, self.secret, max_length=self.max_token_length
            )
            signed_token.require_subject(claims, user_id)
            return _parse_claims(claims)
        except TokenError as e:
            self._log_rejection(e, user_id, token)
            raise HTTPException(status_code=400, detail=INVALID_LINK_DETAIL)

    def verify_change(self, current_user: Dict[str, Any], token: str) -> EmailChangeResult:
        claims = self.verify_token(current_user, token)
        return EmailChangeResult(success=True, new_email=claims.new_email)

    def confirm_change(self, current_user: Dict[str, Any], token: str) -> EmailChangeResult:
        """
        Use the link once and mail Supabase's confirmation to the new address.

        The nonce is claimed before anything is sent and released again if a
        later step fails.
        """
        claims = self.verify_token(current_user, token)
        if not claims.jti:
            self._log_rejection(MalformedTokenError("Token has no nonce"), current_user["id"], token)
            raise HTTPException(status_code=400, detail=INVALID_LINK_DETAIL)
        current_email = (current_user.get("email") or "").strip()
        if not current_email:
            raise HTTPException(status_code=401, detail="Unauthorized")

        self._redeem(claims, token)
        try:
            action_link = self.auth_service.generate_email_change_link(
                current_email, claims.new_email, redirect_to=mailer.build_change_complete_url()
            )
            try:
                mailer.send_email(
                    self.supabase,
                    to=claims.new_email,
                    subject=mailer.CONFIRM_NEW_SUBJECT,
                    content=mailer.render_confirm_new_email(claims.new_email, action_link),
                    email_type=mailer.CONFIRM_NEW_EMAIL_TYPE,
                )
            except Exception as e:
                logger.error(f"send-email invoke error for user {claims.sub}: {e}")
                raise HTTPException(status_code=500, detail="Failed to send email")
        except Exception:
            self._release(claims)
            raise

        logger.info(f"Email change confirmed from current address by user {claims.sub}; link sent to new address")
        return EmailChangeResult(success=True, new_email=claims.new_email)

    def _redeem(self, claims: EmailChangeClaims, token: str) -> None:
        try:
            self.supabase.table("email_change_redemptions")\
                .insert({
                    "jti": claims.jti,
                    "user_id": claims.sub,
                    "new_email": claims.new_email,
                    "expires_at": datetime.fromtimestamp(claims.exp, tz=timezone.utc).isoformat(),
                })\
                .execute()
        except Exception as e:
            if getattr(e, "code", None) == "23505" or "duplicate" in str(e).lower():
                logger.warning(
                    f"Email-change link reused by user {claims.sub} (token {signed_token.fingerprint(token)})"
                )
                raise HTTPException(status_code=400, detail=INVALID_LINK_DETAIL)
            logger.error(f"Failed to record email-change redemption: {e}")
            raise HTTPException(status_code=500, detail="Failed to confirm email change")

    def _release(self, claims: EmailChangeClaims) -> None:
        try:
            self.supabase.table("email_change_redemptions")\
                .delete()\
                .eq("jti", claims.jti)\
                .execute()
        except Exception as e:
            logger.error(f"Failed to release email-change redemption for user {claims.sub}: {e}")

    def _log_rejection(self, error: TokenError, user_id: str, token: str) -> None:
        message = (
            f"Email-change token rejected ({error.kind.value}) for user {user_id} "
            f"(token {signed_token.fingerprint(token)}): {error.message}"
        )
        if error.kind in _LOUD_REJECTIONS:
            logger.warning(message)
        else:
            logger.info(message)


def normalize_email(value: Optional[str]) -> Optional[str]:
    """Trimmed, lowercased address, or None when it isn't a usable email"""
    candidate = (value or "").strip().lower()
    if not candidate:
        return None
    try:
        validate_email(candidate, check_deliverability=False)
    except EmailNotValidError:
        return None
    return candidate


def _parse_claims(claims: Dict[str, Any]) -> EmailChangeClaims:
    try:
        return EmailChangeClaims.model_validate(claims)
    except ValidationError as e:
        raise MalformedTokenError("Token claims do not describe an email change") from e
