from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cashora.api.deps import get_client_info, require_admin
from cashora.core.errors import bad_request, not_found
from cashora.db.session import get_db
from cashora.models.email_template import EmailTemplate
from cashora.models.profile import Profile
from cashora.schemas.admin import (
    EmailSendIn,
    EmailSentOut,
    EmailTemplateIn,
    EmailTemplateOut,
    PlatformSettingsOut,
    PlatformSettingsUpdate,
)
from cashora.schemas.common import MessageOut
from cashora.services.audit_service import log_admin_action
from cashora.services.email_service import email_service
from cashora.services.platform_service import get_platform_settings, update_platform_settings

"""
API Admin - Paramètres & emails.

Rôle (fonctionnel) :
- Lecture / mise à jour partielle des paramètres plateforme (bornes, plafonds par défaut, maintenance).
- Envoi d’un email libre (template ADMIN_MESSAGE) à une sélection d’utilisateurs ou à tous,
  soit avec sujet + corps saisis, soit depuis un modèle enregistré ({name} remplacé par le nom du destinataire).
- Modèles d’email : liste, création (nom unique), suppression.
"""

router = APIRouter(prefix="/api/admin", tags=["admin-settings"])


@router.get("/settings", response_model=PlatformSettingsOut)
async def read_settings(admin: Profile = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    ps = await get_platform_settings(db)
    await db.commit()
    return ps


@router.put("/settings", response_model=PlatformSettingsOut)
async def write_settings(
    payload: PlatformSettingsUpdate,
    request: Request,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    ps, previous = await update_platform_settings(db, admin.id, changes)

    log_admin_action(
        db,
        admin.id,
        "UPDATE_SETTINGS",
        target_id="platform",
        details={
            "old": {k: str(v) for k, v in previous.items()},
            "new": {k: str(v) for k, v in changes.items()},
        },
        client=get_client_info(request),
    )
    await db.commit()
    return ps


async def _template_or_404(db: AsyncSession, template_id: uuid.UUID) -> EmailTemplate:
    template = await db.get(EmailTemplate, template_id)
    if template is None:
        raise not_found("Template not found")
    return template


@router.post("/email/send", response_model=EmailSentOut)
async def send_email(
    payload: EmailSendIn,
    request: Request,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if not payload.all_users and not payload.user_ids:
        raise bad_request("No recipients selected", code="NO_RECIPIENTS")

    if payload.template_id is not None:
        template = await _template_or_404(db, payload.template_id)
        subject, body = template.subject, template.content
    elif payload.subject and payload.body:
        subject, body = payload.subject, payload.body
    else:
        raise bad_request("Subject and body are required", code="EMAIL_CONTENT_REQUIRED")

    stmt = select(Profile).where(Profile.role == "user", Profile.status != "closed")
    if not payload.all_users:
        stmt = stmt.where(Profile.id.in_(payload.user_ids))
    recipients = (await db.execute(stmt)).scalars().all()

    sent = 0
    for user in recipients:
        message = await email_service.send_template(
            db, user, "ADMIN_MESSAGE", {"subject": subject, "body": body.replace("{name}", user.full_name)}
        )
        if message is not None:
            sent += 1

    log_admin_action(
        db,
        admin.id,
        "SEND_EMAIL",
        target_id="users",
        details={
            "subject": subject,
            "template_id": str(payload.template_id) if payload.template_id else None,
            "recipients": len(recipients),
            "sent": sent,
        },
        client=get_client_info(request),
    )
    await db.commit()
    return EmailSentOut(sent=sent)


@router.get("/email/templates", response_model=List[EmailTemplateOut])
async def list_templates(admin: Profile = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    rows = (await db.execute(select(EmailTemplate).order_by(EmailTemplate.created_at.desc()))).scalars().all()
    return list(rows)


@router.post("/email/templates", response_model=EmailTemplateOut, status_code=201)
async def create_template(
    payload: EmailTemplateIn,
    request: Request,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    name = payload.name.strip()
    taken = (await db.execute(select(EmailTemplate.id).where(EmailTemplate.name == name))).first()
    if taken is not None:
        raise bad_request("Template name already exists", code="DUPLICATE_TEMPLATE")

    template = EmailTemplate(name=name, subject=payload.subject.strip(), content=payload.content, created_by=admin.id)
    db.add(template)
    await db.flush()

    log_admin_action(
        db,
        admin.id,
        "CREATE_EMAIL_TEMPLATE",
        target_id=template.id,
        details={"template_name": template.name},
        client=get_client_info(request),
    )
    await db.commit()
    return template


@router.delete("/email/templates/{template_id}", response_model=MessageOut)
async def delete_template(
    template_id: uuid.UUID,
    request: Request,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    template = await _template_or_404(db, template_id)
    await db.delete(template)
    log_admin_action(
        db,
        admin.id,
        "DELETE_EMAIL_TEMPLATE",
        target_id=template_id,
        details={"template_name": template.name},
        client=get_client_info(request),
    )
    await db.commit()
    return MessageOut(message="Template deleted")
