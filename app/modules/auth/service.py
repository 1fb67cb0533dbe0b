import hashlib
import logging
import time
from supabase import Client
from fastapi import HTTPException
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)

# In-memory cache for get_current_user to reduce Supabase auth calls (e.g. many parallel requests with same token)
_AUTH_USER_CACHE: Dict[str, tuple] = {}
_AUTH_CACHE_TTL_SEC = 60
_AUTH_CACHE_MAX_SIZE = 500


def clear_user_cache() -> None:
    _AUTH_USER_CACHE.clear()


def _prune_user_cache(now: float) -> None:
    expired = [key for key, (_, expiry) in _AUTH_USER_CACHE.items() if expiry <= now]
    for key in expired:
        _AUTH_USER_CACHE.pop(key, None)


class AuthService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_current_user(self, token: str) -> Dict[str, Any]:
        """Get current user details from Supabase Auth token. Uses short TTL cache to reduce auth API calls."""
        try:
            cache_key = hashlib.sha256(token.encode()).hexdigest()
            now = time.monotonic()
            if cache_key in _AUTH_USER_CACHE:
                user_data, expiry = _AUTH_USER_CACHE[cache_key]
                if now < expiry:
                    return user_data
                del _AUTH_USER_CACHE[cache_key]
            user_response = self.supabase.auth.get_user(jwt=token)
            if not user_response or not user_response.user:
                raise HTTPException(status_code=401, detail="Invalid or expired token")
            user = user_response.user
            user_data = {
                "id": user.id,
                "email": user.email,
                "user_metadata": user.user_metadata or {},
                "app_metadata": user.app_metadata or {},
                "created_at": user.created_at,
                "updated_at": user.updated_at
            }
            if len(_AUTH_USER_CACHE) >= _AUTH_CACHE_MAX_SIZE:
                _prune_user_cache(now)
            if len(_AUTH_USER_CACHE) < _AUTH_CACHE_MAX_SIZE:
                _AUTH_USER_CACHE[cache_key] = (user_data, now + _AUTH_CACHE_TTL_SEC)
            return user_data
        except HTTPException:
            raise
        except Exception as e:
            error_msg = str(e)
            if "JWT" in error_msg or "expired" in error_msg.lower() or "invalid" in error_msg.lower():
                raise HTTPException(status_code=401, detail="Invalid or expired token")
            raise HTTPException(status_code=401, detail="Authentication failed")

    def generate_email_change_link(self, email: str, new_email: str, redirect_to: Optional[str] = None) -> str:
        """
        Start Supabase's change to `new_email` and return the link that completes it.

        The address only switches once the link is opened, which proves the
        user controls the new inbox. Requires the service role client.
        """
        params: Dict[str, Any] = {
            "type": "email_change_new",
            "email": email,
            "new_email": new_email,
        }
        if redirect_to:
            params["options"] = {"redirect_to": redirect_to}
        try:
            response = self.supabase.auth.admin.generate_link(params)
            properties = getattr(response, "properties", None)
            action_link = getattr(properties, "action_link", None)
            if not action_link:
                raise HTTPException(status_code=500, detail="Failed to start email change")
            return action_link
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Failed to generate email change link: {e}")
            raise HTTPException(status_code=500, detail="Failed to start email change")
