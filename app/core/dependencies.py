"""
Core dependencies for route protection and email-change secret resolution
"""

from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from app.config import settings
from app.database.supabase_client import get_supabase, get_service_supabase
from app.modules.auth.service import AuthService
from supabase import Client
from typing import Dict, Any
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer()


def get_auth_service(supabase: Client = Depends(get_supabase)) -> AuthService:
    return AuthService(supabase)


def get_admin_auth_service(supabase: Client = Depends(get_service_supabase)) -> AuthService:
    return AuthService(supabase)


def get_current_token(
    credentials: HTTPAuthorizationCredentials = Security(security)
) -> str:
    """Extract the Supabase access token from the Authorization header"""
    return credentials.credentials


def get_current_user(
    token: str = Depends(get_current_token),
    auth_service: AuthService = Depends(get_auth_service)
) -> Dict[str, Any]:
    """Resolve the authenticated caller through Supabase Auth"""
    return auth_service.get_current_user(token)


def get_email_change_secret() -> bytes:
    """Signing key for email-change tokens. Missing key is a deployment error, not a client one."""
    secret = settings.get_email_change_secret()
    if not secret:
        logger.error("EMAIL_CHANGE_SECRET not set")
        raise HTTPException(status_code=500, detail="Server configuration error")
    return secret
