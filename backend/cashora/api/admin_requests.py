from __future__ import annotations

import uuid
from datetime import date
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query, Request
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cashora.api.deps import Page, date_bounds, get_client_info, page_params, publish, require_admin
from cashora.core.errors import bad_request
from cashora.db.session import get_db
from cashora.models.deposit_request import DepositRequest
from cashora.models.profile import Profile
from cashora.models.send_request import SendRequest
from cashora.models.withdrawal_request import WithdrawalRequest
from cashora.schemas.admin import (
    ApproveIn,
    BulkSendIn,
    BulkSendOut,
    DepositAdminListOut,
    DepositDecisionOut,
    RecipientsValidationOut,
    RejectIn,
    RequestListOut,
    SendAdminListOut,
    SendDecisionOut,
    SendingActionIn,
    UnifiedRequestOut,
    ValidateRecipientsIn,
    WithdrawalAdminListOut,
    WithdrawalDecisionOut,
)
from cashora.schemas.common import Pagination
from cashora.schemas.dashboard import StatusBreakdown
from cashora.schemas.profile import ProfileBrief
from cashora.services import dashboard_service, ledger_service
from cashora.services.email_service import email_service

"""
API Admin - Demandes (dépôts, retraits, envois).

Rôle (fonctionnel) :
- Files de demandes filtrables (statut, période) + statistiques par statut.
- Décisions admin (approve / reject) déléguées au ledger (transaction atomique + audit).
- Après commit : push temps réel + email transactionnel (stub) à l’utilisateur.
- Envois admin : validation d’une liste d’emails puis envoi groupé (bulk).
- Vue unifiée /requests (les trois files au même format).
"""

router = APIRouter(prefix="/api/admin", tags=["admin-requests"])

STATUS_PATTERN = r"^(pending|approved|rejected)$"
REQUEST_MODELS = {
    "deposit": DepositRequest,
    "withdrawal": WithdrawalRequest,
    "sending": SendRequest,
}


def _mask(account_number: Optional[str]) -> str:
    if not account_number:
        return "****"
    return "****" + account_number[-4:]


def _filters(model, status: Optional[str], start_date: Optional[date], end_date: Optional[date]) -> list:
    conditions = []
    if status:
        conditions.append(model.status == status)
    start, end = date_bounds(start_date, end_date)
    if start:
        conditions.append(model.created_at >= start)
    if end:
        conditions.append(model.created_at < end)
    return conditions


async def _page_of(db: AsyncSession, model, conditions: list, page: Page):
    total = (await db.execute(select(func.count(model.id)).where(*conditions))).scalar_one()
    rows = (
        await db.execute(
            select(model).where(*conditions).order_by(model.created_at.desc()).offset(page.offset).limit(page.limit)
        )
    ).scalars().all()
    return list(rows), Pagination.build(page.page, page.limit, total)


async def _email(db: AsyncSession, user_id: uuid.UUID, template: str, variables: Dict[str, Any]) -> None:
    user = await db.get(Profile, user_id)
    if user is not None:
        await email_service.send_template(db, user, template, variables)


# ---------------------------------------------------------------------------
# Dépôts
# ---------------------------------------------------------------------------

@router.get("/deposits", response_model=DepositAdminListOut)
async def list_deposits(
    status: Optional[str] = Query(None, pattern=STATUS_PATTERN),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    page: Page = Depends(page_params),
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    rows, pagination = await _page_of(db, DepositRequest, _filters(DepositRequest, status, start_date, end_date), page)
    return DepositAdminListOut(data=rows, pagination=pagination)


@router.get("/deposits/stats", response_model=StatusBreakdown)
async def deposit_stats(admin: Profile = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return await dashboard_service.status_breakdown(db, DepositRequest)


@router.put("/deposits/{request_id}/approve", response_model=DepositDecisionOut)
async def approve_deposit(
    request_id: uuid.UUID,
    request: Request,
    payload: Optional[ApproveIn] = Body(None),
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    outcome = await ledger_service.approve_deposit(
        db, request_id, admin, note=payload.note if payload else None, client=get_client_info(request)
    )
    await publish(request, outcome.notifications)

    req = outcome.request
    await _email(db, req.user_id, "DEPOSIT_APPROVED", {"amount": req.amount, "reference": req.reference})
    return DepositDecisionOut(
        message="Deposit approved",
        deposit_request=req,
        transaction=await ledger_service.load_transaction(db, outcome.transaction.id),
    )


@router.put("/deposits/{request_id}/reject", response_model=DepositDecisionOut)
async def reject_deposit(
    request_id: uuid.UUID,
    payload: RejectIn,
    request: Request,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    outcome = await ledger_service.reject_deposit(db, request_id, admin, payload.reason, client=get_client_info(request))
    await publish(request, outcome.notifications)

    req = outcome.request
    await _email(
        db,
        req.user_id,
        "DEPOSIT_REJECTED",
        {"amount": req.amount, "reference": req.reference, "reason": req.rejection_reason},
    )
    return DepositDecisionOut(message="Deposit rejected", deposit_request=req)


# ---------------------------------------------------------------------------
# Retraits
# ---------------------------------------------------------------------------

@router.get("/withdrawals", response_model=WithdrawalAdminListOut)
async def list_withdrawals(
    status: Optional[str] = Query(None, pattern=STATUS_PATTERN),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    page: Page = Depends(page_params),
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    rows, pagination = await _page_of(
        db, WithdrawalRequest, _filters(WithdrawalRequest, status, start_date, end_date), page
    )
    return WithdrawalAdminListOut(data=rows, pagination=pagination)


@router.get("/withdrawals/stats", response_model=StatusBreakdown)
async def withdrawal_stats(admin: Profile = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return await dashboard_service.status_breakdown(db, WithdrawalRequest)


@router.put("/withdrawals/{request_id}/approve", response_model=WithdrawalDecisionOut)
async def approve_withdrawal(
    request_id: uuid.UUID,
    request: Request,
    payload: Optional[ApproveIn] = Body(None),
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    outcome = await ledger_service.approve_withdrawal(
        db, request_id, admin, note=payload.note if payload else None, client=get_client_info(request)
    )
    await publish(request, outcome.notifications)

    req = outcome.request
    await _email(
        db,
        req.user_id,
        "WITHDRAWAL_APPROVED",
        {
            "amount": req.amount,
            "bank_name": outcome.details.get("bank_name") or "your bank",
            "account": _mask(outcome.details.get("account_number")),
        },
    )
    return WithdrawalDecisionOut(
        message="Withdrawal approved",
        withdrawal_request=req,
        transaction=await ledger_service.load_transaction(db, outcome.transaction.id),
    )


@router.put("/withdrawals/{request_id}/reject", response_model=WithdrawalDecisionOut)
async def reject_withdrawal(
    request_id: uuid.UUID,
    payload: RejectIn,
    request: Request,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    outcome = await ledger_service.reject_withdrawal(
        db, request_id, admin, payload.reason, client=get_client_info(request)
    )
    await publish(request, outcome.notifications)

    req = outcome.request
    await _email(db, req.user_id, "WITHDRAWAL_REJECTED", {"amount": req.amount, "reason": req.rejection_reason})
    return WithdrawalDecisionOut(message="Withdrawal rejected", withdrawal_request=req)


# ---------------------------------------------------------------------------
# Envois
# ---------------------------------------------------------------------------

@router.get("/sending", response_model=SendAdminListOut)
async def list_sending(
    status: Optional[str] = Query(None, pattern=STATUS_PATTERN),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    page: Page = Depends(page_params),
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    rows, pagination = await _page_of(db, SendRequest, _filters(SendRequest, status, start_date, end_date), page)
    return SendAdminListOut(data=rows, pagination=pagination)


@router.put("/sending", response_model=SendDecisionOut)
async def process_sending(
    payload: SendingActionIn,
    request: Request,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    client = get_client_info(request)
    if payload.action == "approve":
        outcome = await ledger_service.approve_send_request(db, payload.id, admin, client=client)
        message = "Sending request approved"
    else:
        outcome = await ledger_service.reject_send_request(db, payload.id, admin, payload.reason, client=client)
        message = "Sending request rejected"
    await publish(request, outcome.notifications)

    transaction = None
    if outcome.transaction is not None:
        transaction = await ledger_service.load_transaction(db, outcome.transaction.id)
    return SendDecisionOut(message=message, send_request=outcome.request, transaction=transaction)


@router.post("/sending/validate", response_model=RecipientsValidationOut)
async def validate_recipients(
    payload: ValidateRecipientsIn,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    found, missing = await ledger_service.find_profiles_by_email(db, [r.email for r in payload.recipients])
    return RecipientsValidationOut(
        valid=[ProfileBrief.model_validate(p) for p in found],
        invalid=missing,
        total_valid=len(found),
        total_invalid=len(missing),
    )


@router.post("/sending/bulk", response_model=BulkSendOut)
async def bulk_send(
    payload: BulkSendIn,
    request: Request,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    outcome = await ledger_service.bulk_send(
        db,
        admin,
        [r.email for r in payload.recipients],
        payload.amount,
        payload.description,
        client=get_client_info(request),
    )
    await publish(request, outcome.notifications)
    count = outcome.details["recipient_count"]
    return BulkSendOut(message=f"Sent to {count} recipients", count=count)


# ---------------------------------------------------------------------------
# Vue unifiée
# ---------------------------------------------------------------------------

@router.get("/requests", response_model=RequestListOut)
async def list_requests(
    type: str = Query("deposit"),
    status: Optional[str] = Query(None, pattern=STATUS_PATTERN),
    page: Page = Depends(page_params),
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    model = REQUEST_MODELS.get(type)
    if model is None:
        raise bad_request("Invalid request type", code="INVALID_REQUEST_TYPE")

    rows, pagination = await _page_of(db, model, _filters(model, status, None, None), page)

    owner_attr = "sender_id" if model is SendRequest else "user_id"
    owner_ids = {getattr(r, owner_attr) for r in rows}
    owners = {}
    if owner_ids:
        owners = {
            p.id: p for p in (await db.execute(select(Profile).where(Profile.id.in_(owner_ids)))).scalars().all()
        }

    data = []
    for r in rows:
        owner_id = getattr(r, owner_attr)
        owner = owners.get(owner_id)
        data.append(
            UnifiedRequestOut(
                id=r.id,
                type=type,
                user_id=owner_id,
                user=ProfileBrief.model_validate(owner) if owner else None,
                amount=r.amount,
                status=r.status,
                reference=getattr(r, "reference", None),
                rejection_reason=r.rejection_reason,
                created_at=r.created_at,
                processed_at=r.processed_at,
            )
        )
    return RequestListOut(data=data, pagination=pagination)
