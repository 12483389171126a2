from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from cashora.api.deps import RateLimit, get_client_info, require_user
from cashora.db.session import get_db
from cashora.models.profile import Profile
from cashora.schemas.common import MessageOut
from cashora.schemas.profile import CloseAccountIn, PasswordChangeIn
from cashora.services import auth_service, export_service

"""
API Compte.

Rôle (fonctionnel) :
- Changement de mot de passe (mot de passe actuel exigé).
- Fermeture du compte (solde nul exigé).
- Export JSON des données du compte.
"""

router = APIRouter(prefix="/api/user/account", tags=["account"])


@router.put("/password", response_model=MessageOut, dependencies=[Depends(RateLimit(5))])
async def change_password(
    payload: PasswordChangeIn,
    request: Request,
    user: Profile = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    await auth_service.change_password(
        db, user, payload.current_password, payload.new_password, client=get_client_info(request)
    )
    return MessageOut(message="Password updated")


@router.post("/close", response_model=MessageOut, dependencies=[Depends(RateLimit(5))])
async def close_account(
    payload: CloseAccountIn,
    request: Request,
    user: Profile = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    await auth_service.close_account(db, user, payload.password, client=get_client_info(request))
    return MessageOut(message="Account closed")


@router.get("/export")
async def export_account(user: Profile = Depends(require_user), db: AsyncSession = Depends(get_db)):
    return await export_service.account_export(db, user)
