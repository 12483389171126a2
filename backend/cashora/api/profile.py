from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cashora.api.deps import Page, RateLimit, get_client_info, page_params, publish, require_user
from cashora.core.errors import bad_request
from cashora.core.storage import storage
from cashora.core.validation import validate_name, validate_phone
from cashora.db.session import get_db
from cashora.models.activity_log import ActivityLog
from cashora.models.profile import Profile
from cashora.schemas.common import Pagination
from cashora.schemas.profile import ActivityListOut, ProfileOut, ProfileUpdate, VerificationOut, VerificationStatusOut
from cashora.services import verification_service
from cashora.services.audit_service import log_activity
from cashora.services.verification_service import DOCUMENT_MAX_BYTES, Document

"""
API Profil.

Rôle (fonctionnel) :
- Lecture / mise à jour du profil (nom, téléphone).
- Upload de l’avatar (png / jpeg / webp, 2 Mo max) dans le bucket "avatars".
- Fil d’activité paginé du compte.
- Vérification d’identité : soumission du dossier (multipart) et suivi de son statut.
"""

router = APIRouter(prefix="/api/user/profile", tags=["profile"])
log = logging.getLogger("cashora.profile")

AVATAR_TYPES = {"image/png": "png", "image/jpeg": "jpg", "image/webp": "webp"}
AVATAR_MAX_BYTES = 2 * 1024 * 1024


@router.get("", response_model=ProfileOut)
async def get_profile(user: Profile = Depends(require_user)):
    return user


@router.put("", response_model=ProfileOut)
async def update_profile(
    payload: ProfileUpdate,
    request: Request,
    user: Profile = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    changes = payload.model_dump(exclude_unset=True)
    if "full_name" in changes:
        user.full_name = validate_name(changes["full_name"])
    if "phone" in changes:
        user.phone = validate_phone(changes["phone"])

    log_activity(
        db,
        user.id,
        "profile_updated",
        description="Profile updated",
        data={"fields": sorted(changes)},
        client=get_client_info(request),
    )
    await db.commit()
    return user


@router.post("/avatar", response_model=ProfileOut)
async def upload_avatar(
    request: Request,
    file: UploadFile = File(...),
    user: Profile = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    extension = AVATAR_TYPES.get(file.content_type or "")
    if extension is None:
        raise bad_request("Invalid file type", code="INVALID_FILE_TYPE")

    content = await file.read(AVATAR_MAX_BYTES + 1)
    if len(content) > AVATAR_MAX_BYTES:
        raise bad_request("File too large", code="FILE_TOO_LARGE")

    previous = user.avatar_url
    user.avatar_url = storage.save("avatars", user.id, content, extension)
    log_activity(db, user.id, "avatar_updated", description="Avatar updated", client=get_client_info(request))
    await db.commit()

    storage.delete(previous)
    log.info("avatar_updated", extra={"user_id": str(user.id)})
    return user


@router.get("/activities", response_model=ActivityListOut)
async def list_activities(
    page: Page = Depends(page_params),
    user: Profile = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    where = ActivityLog.user_id == user.id
    total = (await db.execute(select(func.count(ActivityLog.id)).where(where))).scalar_one()
    rows = (
        await db.execute(
            select(ActivityLog).where(where).order_by(ActivityLog.created_at.desc()).offset(page.offset).limit(page.limit)
        )
    ).scalars().all()
    return ActivityListOut(data=list(rows), pagination=Pagination.build(page.page, page.limit, total))


async def _document(label: str, upload: Optional[UploadFile]) -> Optional[Document]:
    if upload is None:
        return None
    # Un octet de plus suffit à détecter le dépassement
    content = await upload.read(DOCUMENT_MAX_BYTES + 1)
    return Document(label=label, content_type=upload.content_type, content=content)


@router.post("/verify", response_model=VerificationOut, status_code=201, dependencies=[Depends(RateLimit(5))])
async def submit_verification(
    request: Request,
    id_type: Optional[str] = Form(None),
    id_number: Optional[str] = Form(None),
    id_front: Optional[UploadFile] = File(None),
    id_back: Optional[UploadFile] = File(None),
    selfie: Optional[UploadFile] = File(None),
    user: Profile = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    documents = [
        await _document("id-front", id_front),
        await _document("id-back", id_back),
        await _document("selfie", selfie),
    ]
    out = await verification_service.submit(
        db, user, id_type, id_number, documents, client=get_client_info(request)
    )
    await publish(request, out.notifications)
    return out.verification


@router.get("/verification", response_model=VerificationStatusOut)
async def verification_status(user: Profile = Depends(require_user), db: AsyncSession = Depends(get_db)):
    latest = await verification_service.latest_verification(db, user.id)
    return VerificationStatusOut(verification_level=user.verification_level, verification=latest)
