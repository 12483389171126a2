from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cashora.core.errors import bad_request, not_found
from cashora.core.storage import storage
from cashora.models.notification import Notification
from cashora.models.profile import Profile
from cashora.models.profile_verification import ID_TYPES, ProfileVerification
from cashora.services.audit_service import NO_CLIENT, ClientInfo, log_activity, log_admin_action
from cashora.services.notification_service import notify_admins, notify_user

"""
Verification Service (pièces d’identité).

Rôle (fonctionnel) :
- Soumission d’un dossier : type + numéro de pièce, recto, verso, selfie (JPEG / PNG, 5 Mo max chacun).
  Refus si le profil est déjà vérifié (niveau 2) ou si un dossier est déjà en attente.
- Revue admin : approve (profil au niveau 2) ou reject (motif obligatoire).

Les fichiers sont écrits en zone privée AVANT l’insertion ; la validation complète
a lieu en amont, un dossier refusé n’écrit rien.
"""

log = logging.getLogger("cashora.verification")

DOCUMENT_TYPES = {"image/jpeg": "jpg", "image/png": "png"}
DOCUMENT_MAX_BYTES = 5 * 1024 * 1024
DOCUMENTS_VERIFIED_LEVEL = 2

ID_NUMBER_RE = re.compile(r"^[A-Za-z0-9-]{4,50}$")


@dataclass
class Document:
    label: str
    content_type: Optional[str]
    content: bytes


@dataclass
class VerificationOutcome:
    verification: ProfileVerification
    notifications: List[Notification] = field(default_factory=list)


def _check_document(doc: Document) -> str:
    extension = DOCUMENT_TYPES.get(doc.content_type or "")
    if extension is None:
        raise bad_request("Invalid file type. Only JPEG and PNG images are allowed.", code="INVALID_FILE_TYPE")
    if len(doc.content) > DOCUMENT_MAX_BYTES:
        raise bad_request("File size too large. Maximum size is 5MB per file.", code="FILE_TOO_LARGE")
    return extension


async def pending_verification(db: AsyncSession, user_id: uuid.UUID) -> Optional[ProfileVerification]:
    return (
        await db.execute(
            select(ProfileVerification).where(
                ProfileVerification.user_id == user_id, ProfileVerification.status == "pending"
            )
        )
    ).scalars().first()


async def latest_verification(db: AsyncSession, user_id: uuid.UUID) -> Optional[ProfileVerification]:
    return (
        await db.execute(
            select(ProfileVerification)
            .where(ProfileVerification.user_id == user_id)
            .order_by(ProfileVerification.created_at.desc())
        )
    ).scalars().first()


async def submit(
    db: AsyncSession,
    user: Profile,
    id_type: Optional[str],
    id_number: Optional[str],
    documents: List[Optional[Document]],
    *,
    client: ClientInfo = NO_CLIENT,
) -> VerificationOutcome:
    if user.verification_level >= DOCUMENTS_VERIFIED_LEVEL:
        raise bad_request("Profile is already verified", code="ALREADY_VERIFIED")
    if await pending_verification(db, user.id) is not None:
        raise bad_request("Verification request is already pending", code="VERIFICATION_PENDING")

    id_type = (id_type or "").strip()
    id_number = (id_number or "").strip()
    if not id_type or not id_number or any(doc is None or not doc.content for doc in documents):
        raise bad_request("All verification documents are required", code="DOCUMENTS_REQUIRED")
    if id_type not in ID_TYPES:
        raise bad_request("Invalid ID type", code="INVALID_ID_TYPE", details={"allowed": list(ID_TYPES)})
    if not ID_NUMBER_RE.match(id_number):
        raise bad_request("Invalid ID number", code="INVALID_ID_NUMBER")

    extensions = [_check_document(doc) for doc in documents]
    front, back, selfie = [
        storage.save_private("verifications", user.id, doc.content, ext, doc.label)
        for doc, ext in zip(documents, extensions)
    ]

    verification = ProfileVerification(
        user_id=user.id,
        id_type=id_type,
        id_number=id_number,
        id_front_url=front,
        id_back_url=back,
        selfie_url=selfie,
        status="pending",
    )
    db.add(verification)
    await db.flush()

    out = VerificationOutcome(verification=verification)
    out.notifications.append(
        notify_user(
            db,
            user.id,
            "verification_submitted",
            "Verification Request Submitted",
            "Your profile verification request has been submitted and is pending review.",
            {"verification_id": str(verification.id)},
        )
    )
    out.notifications.append(
        notify_admins(
            db,
            "verification_request",
            "New Verification Request",
            f"{user.full_name} submitted identity documents",
            {"verification_id": str(verification.id), "user_id": str(user.id)},
        )
    )
    log_activity(
        db,
        user.id,
        "verification_submitted",
        description="Identity documents submitted",
        data={"verification_id": str(verification.id), "id_type": id_type},
        client=client,
    )
    await db.commit()

    log.info("verification_submitted", extra={"user_id": str(user.id), "entity_id": str(verification.id)})
    return out


async def get_or_404(db: AsyncSession, verification_id: uuid.UUID) -> ProfileVerification:
    verification = await db.get(ProfileVerification, verification_id)
    if verification is None:
        raise not_found("Verification request not found")
    return verification


async def review(
    db: AsyncSession,
    verification_id: uuid.UUID,
    admin: Profile,
    action: str,
    reason: Optional[str] = None,
    *,
    client: ClientInfo = NO_CLIENT,
) -> VerificationOutcome:
    verification = await get_or_404(db, verification_id)
    if verification.status != "pending":
        raise bad_request("Verification request already processed", code="ALREADY_PROCESSED")
    cleaned = (reason or "").strip()
    if action != "approve" and not cleaned:
        raise bad_request("Rejection reason is required", code="REASON_REQUIRED")

    now = datetime.now(timezone.utc)
    verification.reviewed_by = admin.id
    verification.reviewed_at = now
    out = VerificationOutcome(verification=verification)

    if action == "approve":
        user = await db.get(Profile, verification.user_id)
        verification.status = "approved"
        user.verification_level = max(user.verification_level, DOCUMENTS_VERIFIED_LEVEL)
        user.verified_at = now
        user.verified_by = admin.id
        out.notifications.append(
            notify_user(
                db,
                verification.user_id,
                "verification_approved",
                "Verification Approved",
                "Your identity documents have been verified.",
                {"verification_id": str(verification.id)},
            )
        )
        audit_action = "APPROVE_VERIFICATION"
    else:
        verification.status = "rejected"
        verification.rejection_reason = cleaned[:500]
        out.notifications.append(
            notify_user(
                db,
                verification.user_id,
                "verification_rejected",
                "Verification Rejected",
                f"Your verification request was rejected: {verification.rejection_reason}",
                {"verification_id": str(verification.id)},
            )
        )
        audit_action = "REJECT_VERIFICATION"

    log_admin_action(
        db,
        admin.id,
        audit_action,
        user_id=verification.user_id,
        target_id=verification.id,
        details={"reason": verification.rejection_reason},
        client=client,
    )
    await db.commit()
    return out
