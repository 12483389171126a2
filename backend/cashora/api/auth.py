from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from cashora.api.deps import RateLimit, get_client_info, get_current_user, publish
from cashora.core.errors import bad_request
from cashora.db.session import get_db
from cashora.models.profile import Profile
from cashora.schemas.auth import (
    AuthOut,
    BlockStatusOut,
    DeviceOut,
    LoginIn,
    RecoverIn,
    ResetPasswordIn,
    SecurityAnswerIn,
    SecurityQuestionsIn,
    SecurityQuestionsOut,
    SignupIn,
    TotpTokenIn,
    TwoFactorEnableIn,
    TwoFactorSetupOut,
    TwoFactorStatusOut,
)
from cashora.schemas.common import MessageOut
from cashora.schemas.profile import ProfileOut
from cashora.services import auth_service

"""
API Auth.

Rôle (fonctionnel) :
- Inscription / connexion (jeton JWT Bearer), second facteur TOTP.
- Gestion 2FA : activation (secret + QR code), vérification, désactivation.
- Récupération de mot de passe (jeton court par email) et réinitialisation.
- Lecture du profil courant et de l’historique des appareils.
- Questions de sécurité : enregistrement (3 minimum), liste, vérification d’une réponse.

Les routes publiques sensibles (signup, login, recover) sont soumises à un quota par IP.
"""

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/signup", response_model=AuthOut, status_code=201, dependencies=[Depends(RateLimit(10))])
async def signup(payload: SignupIn, request: Request, db: AsyncSession = Depends(get_db)):
    result = await auth_service.signup(
        db,
        email=payload.email,
        password=payload.password,
        full_name=payload.full_name,
        phone=payload.phone,
        client=get_client_info(request),
    )
    await publish(request, result.notifications)
    return AuthOut(access_token=result.access_token, user=ProfileOut.model_validate(result.user))


@router.post("/login", response_model=AuthOut, dependencies=[Depends(RateLimit(10))])
async def login(payload: LoginIn, request: Request, db: AsyncSession = Depends(get_db)):
    result = await auth_service.login(
        db,
        email=payload.email,
        password=payload.password,
        totp_code=payload.totp_code,
        client=get_client_info(request),
    )
    if result.requires_2fa:
        return AuthOut(requires_2fa=True)
    return AuthOut(access_token=result.access_token, user=ProfileOut.model_validate(result.user))


@router.get("/user", response_model=ProfileOut)
async def current_user(user: Profile = Depends(get_current_user)):
    return user


@router.post("/enable-2fa", response_model=TwoFactorSetupOut, dependencies=[Depends(RateLimit(10))])
async def enable_2fa(
    request: Request,
    payload: Optional[TwoFactorEnableIn] = Body(None),
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    token = payload.token if payload else None
    setup = await auth_service.enable_2fa(db, user, token, client=get_client_info(request))
    return TwoFactorSetupOut(secret=setup.secret, otpauth_url=setup.otpauth_url, qr_code=setup.qr_code)


@router.post("/verify-2fa", response_model=TwoFactorStatusOut, dependencies=[Depends(RateLimit(10))])
async def verify_2fa(
    payload: TotpTokenIn,
    request: Request,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await auth_service.verify_2fa(db, user, payload.token, client=get_client_info(request))
    return TwoFactorStatusOut(two_factor_enabled=True)


@router.post("/disable-2fa", response_model=TwoFactorStatusOut, dependencies=[Depends(RateLimit(10))])
async def disable_2fa(
    payload: TotpTokenIn,
    request: Request,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await auth_service.disable_2fa(db, user, payload.token, client=get_client_info(request))
    return TwoFactorStatusOut(two_factor_enabled=False)


def _required_user_id(user_id: Optional[uuid.UUID]) -> uuid.UUID:
    if user_id is None:
        raise bad_request("user_id is required", code="USER_ID_REQUIRED")
    return user_id


@router.get("/check-2fa", response_model=TwoFactorStatusOut)
async def check_2fa(user_id: Optional[uuid.UUID] = Query(None), db: AsyncSession = Depends(get_db)):
    user = await auth_service.get_profile_or_404(db, _required_user_id(user_id))
    return TwoFactorStatusOut(two_factor_enabled=user.two_factor_enabled)


@router.get("/block-status", response_model=BlockStatusOut)
async def block_status(user_id: Optional[uuid.UUID] = Query(None), db: AsyncSession = Depends(get_db)):
    user = await auth_service.get_profile_or_404(db, _required_user_id(user_id))
    return BlockStatusOut(blocked=user.status == "suspended")


@router.get("/device-history", response_model=List[DeviceOut])
async def device_history(user: Profile = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await auth_service.list_devices(db, user.id)


@router.post("/security-questions", response_model=SecurityQuestionsOut)
async def set_security_questions(
    payload: SecurityQuestionsIn,
    request: Request,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rows = await auth_service.set_security_questions(
        db, user, [(q.question, q.answer) for q in payload.questions], client=get_client_info(request)
    )
    return SecurityQuestionsOut(questions=rows)


@router.get("/security-questions", response_model=SecurityQuestionsOut)
async def list_security_questions(user: Profile = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return SecurityQuestionsOut(questions=await auth_service.list_security_questions(db, user.id))


@router.put("/security-questions", response_model=MessageOut, dependencies=[Depends(RateLimit(10))])
async def verify_security_question(
    payload: SecurityAnswerIn,
    request: Request,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await auth_service.verify_security_question(
        db, user, payload.question_id, payload.answer, client=get_client_info(request)
    )
    return MessageOut(message="Security question verified")


@router.post("/recover", response_model=MessageOut, dependencies=[Depends(RateLimit(5))])
async def recover(payload: RecoverIn, request: Request, db: AsyncSession = Depends(get_db)):
    await auth_service.recover(db, payload.email, client=get_client_info(request))
    return MessageOut(message="If the email is registered, a reset link has been sent")


@router.post("/reset-password", response_model=MessageOut, dependencies=[Depends(RateLimit(10))])
async def reset_password(payload: ResetPasswordIn, request: Request, db: AsyncSession = Depends(get_db)):
    await auth_service.reset_password(db, payload.token, payload.password, client=get_client_info(request))
    return MessageOut(message="Password has been reset")
