"""
api/routes/v1/users.py -- User provisioning helpers for support staff.

Routes:
  GET /api/v1/users/check-email?email=...  -- is this professional email taken?

Reserved for members of a Support.* group (require_support_user). Anyone
else gets 403 without being told which membership was missing.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request

from api.models import EmailCheckResponse
from auth.dependencies import get_store, require_support_user
from auth.errors import Malformed
from auth.models import User

router = APIRouter()


@router.get("/users/check-email", response_model=EmailCheckResponse)
def check_email(
    request: Request,
    email: Optional[str] = None,
    current_user: User = Depends(require_support_user),
) -> EmailCheckResponse:
    if not email:
        raise Malformed("Parameter 'email' is required.")
    return EmailCheckResponse(exists=get_store(request).email_exists(email.strip()))
