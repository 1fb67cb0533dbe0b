from fastapi import APIRouter, Depends
from app.core.dependencies import get_current_user
from app.modules.auth.schemas import CurrentUserResponse
from typing import Dict

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me", response_model=CurrentUserResponse)
async def get_me(current_user: Dict = Depends(get_current_user)):
    """Get current authenticated user (for frontend UI)."""
    return current_user
