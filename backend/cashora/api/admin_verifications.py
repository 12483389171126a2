from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Request
from fastapi.responses import FileResponse
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cashora.api.deps import Page, get_client_info, page_params, publish, require_admin
from cashora.core.errors import not_found
from cashora.core.storage import storage
from cashora.db.session import get_db
from cashora.models.profile import Profile
from cashora.models.profile_verification import ProfileVerification
from cashora.schemas.admin import AdminVerificationOut, VerificationListOut, VerificationReviewIn
from cashora.schemas.common import Pagination
from cashora.services import verification_service

"""
API Admin - Vérifications d’identité.

Rôle (fonctionnel) :
- File des dossiers (filtre statut), plus récents d’abord.
- Lecture d’une pièce (recto, verso, selfie) depuis la zone privée du stockage.
- Décision approve / reject (motif obligatoire), notifiée à l’utilisateur et tracée en audit.
"""

router = APIRouter(prefix="/api/admin/verifications", tags=["admin-verifications"])

DOCUMENT_FIELDS = {"id-front": "id_front_url", "id-back": "id_back_url", "selfie": "selfie_url"}


@router.get("", response_model=VerificationListOut)
async def list_verifications(
    status: Optional[str] = Query(None, pattern=r"^(pending|approved|rejected)$"),
    page: Page = Depends(page_params),
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    conditions = [ProfileVerification.status == status] if status else []
    total = (await db.execute(select(func.count(ProfileVerification.id)).where(*conditions))).scalar_one()
    rows = (
        await db.execute(
            select(ProfileVerification)
            .where(*conditions)
            .order_by(ProfileVerification.created_at.desc())
            .offset(page.offset)
            .limit(page.limit)
        )
    ).scalars().all()
    return VerificationListOut(data=list(rows), pagination=Pagination.build(page.page, page.limit, total))


@router.get("/{verification_id}/documents/{kind}")
async def read_document(
    verification_id: uuid.UUID,
    kind: str = Path(..., pattern=r"^(id-front|id-back|selfie)$"),
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    verification = await verification_service.get_or_404(db, verification_id)
    path = storage.private_path(getattr(verification, DOCUMENT_FIELDS[kind]))
    if path is None:
        raise not_found("Document not found")
    return FileResponse(path)


@router.put("/{verification_id}", response_model=AdminVerificationOut)
async def review_verification(
    verification_id: uuid.UUID,
    payload: VerificationReviewIn,
    request: Request,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    out = await verification_service.review(
        db, verification_id, admin, payload.action, payload.reason, client=get_client_info(request)
    )
    await publish(request, out.notifications)
    return out.verification
