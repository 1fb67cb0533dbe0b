from fastapi import APIRouter, Depends
from app.core.dependencies import get_current_user, get_email_change_secret, get_admin_auth_service
from app.database.supabase_client import get_service_supabase
from app.modules.auth.service import AuthService
from app.modules.email_change.schemas import (
    EmailChangeRequest, EmailChangeRequestResponse,
    EmailChangeTokenRequest, EmailChangeResult
)
from app.modules.email_change.service import EmailChangeService
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/email-change", tags=["email-change"])


def get_email_change_service(
    supabase: Client = Depends(get_service_supabase),
    secret: bytes = Depends(get_email_change_secret),
    auth_service: AuthService = Depends(get_admin_auth_service),
) -> EmailChangeService:
    return EmailChangeService(supabase, secret, auth_service=auth_service)


def get_token_checker(secret: bytes = Depends(get_email_change_secret)) -> EmailChangeService:
    """Verification only needs the signing key, not a service-role client"""
    return EmailChangeService(None, secret)


@router.post("/request", response_model=EmailChangeRequestResponse)
async def request_email_change(
    body: EmailChangeRequest,
    current_user: Dict = Depends(get_current_user),
    service: EmailChangeService = Depends(get_email_change_service)
):
    """Email a confirmation link for the new address to the caller's current address"""
    return service.request_change(current_user, body.new_email)


@router.post("/verify", response_model=EmailChangeResult)
async def verify_email_change_token(
    body: EmailChangeTokenRequest,
    current_user: Dict = Depends(get_current_user),
    service: EmailChangeService = Depends(get_token_checker)
):
    """Check a confirmation link and return the requested address"""
    return service.verify_change(current_user, body.token)


@router.post("/confirm", response_model=EmailChangeResult)
async def confirm_email_change(
    body: EmailChangeTokenRequest,
    current_user: Dict = Depends(get_current_user),
    service: EmailChangeService = Depends(get_email_change_service)
):
    """Use a confirmation link once and mail the Supabase confirmation to the new address"""
    return service.confirm_change(current_user, body.token)
