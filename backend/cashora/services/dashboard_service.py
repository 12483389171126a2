from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from cashora.models.deposit_request import DepositRequest
from cashora.models.profile import Profile
from cashora.models.send_request import SendRequest
from cashora.models.support_ticket import SupportTicket
from cashora.models.transaction import TYPES, Transaction
from cashora.models.withdrawal_request import WithdrawalRequest
from cashora.schemas.dashboard import (
    AdminDashboardOut,
    ChartOut,
    ChartPoint,
    ReportDay,
    StatusBreakdown,
    TransactionsReportOut,
    UserDashboardOut,
    UserDashboardStats,
    UsersReportDay,
    UsersReportOut,
    VolumeByType,
)
from cashora.schemas.ledger import TransactionOut
from cashora.schemas.profile import ProfileOut
from cashora.services.ledger_service import get_user_transaction_totals
from cashora.services.limits_service import ZERO, _dec
from cashora.services.notification_service import unread_count

"""
Dashboard Service.

Rôle (fonctionnel) :
- Calcule les vues agrégées (1 endpoint = 1 payload complet) :
  - tableau de bord utilisateur (solde, totaux, transactions récentes, compteurs en attente)
  - graphique entrées / sorties par jour
  - tableau de bord admin (utilisateurs, volume 30 jours, files d’attente)
  - répartitions par statut (dépôts, retraits, transactions)
  - rapports journaliers (transactions par type, inscriptions)

Notes :
- Les séries journalières sont agrégées côté Python sur une fenêtre bornée :
  le découpage par jour UTC reste identique quel que soit le moteur SQL.
- Les séries renvoient toujours chaque jour de la fenêtre (même à 0) pour un axe continu.
"""

RECENT_LIMIT = 5


def _date_range(days: int) -> Tuple[datetime, List[date]]:
    """Retourne (début UTC, liste des dates inclusives) sur les N derniers jours."""
    today = datetime.now(timezone.utc).date()
    first = today - timedelta(days=days - 1)
    start = datetime(first.year, first.month, first.day, tzinfo=timezone.utc)
    return start, [first + timedelta(days=i) for i in range(days)]


def _day(dt: datetime) -> date:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).date()


async def _count(db: AsyncSession, model, *conditions) -> int:
    return int((await db.execute(select(func.count(model.id)).where(*conditions))).scalar_one() or 0)


async def recent_transactions(db: AsyncSession, user_id: uuid.UUID | None = None, limit: int = RECENT_LIMIT):
    stmt = select(Transaction).order_by(Transaction.created_at.desc()).limit(limit)
    if user_id is not None:
        stmt = stmt.where(or_(Transaction.sender_id == user_id, Transaction.recipient_id == user_id))
    return list((await db.execute(stmt)).scalars().unique().all())


# ---------------------------------------------------------------------------
# Utilisateur
# ---------------------------------------------------------------------------

async def user_stats(db: AsyncSession, user: Profile) -> UserDashboardStats:
    totals = await get_user_transaction_totals(db, user.id)
    recent = await recent_transactions(db, user.id)
    return UserDashboardStats(
        current_balance=_dec(user.balance),
        recent_transactions=[TransactionOut.model_validate(t) for t in recent],
        **totals.model_dump(),
    )


async def user_dashboard(db: AsyncSession, user: Profile) -> UserDashboardOut:
    stats = await user_stats(db, user)
    return UserDashboardOut(
        **stats.model_dump(),
        profile=ProfileOut.model_validate(user),
        unread_notifications=await unread_count(db, user),
        pending_deposits=await _count(
            db, DepositRequest, DepositRequest.user_id == user.id, DepositRequest.status == "pending"
        ),
        pending_withdrawals=await _count(
            db, WithdrawalRequest, WithdrawalRequest.user_id == user.id, WithdrawalRequest.status == "pending"
        ),
    )


async def user_chart(db: AsyncSession, user: Profile, days: int = 30) -> ChartOut:
    start, dates = _date_range(days)
    rows = (
        await db.execute(
            select(Transaction.created_at, Transaction.amount, Transaction.sender_id, Transaction.recipient_id).where(
                Transaction.status == "completed",
                Transaction.created_at >= start,
                or_(Transaction.sender_id == user.id, Transaction.recipient_id == user.id),
            )
        )
    ).all()

    incoming: Dict[date, Decimal] = defaultdict(lambda: ZERO)
    outgoing: Dict[date, Decimal] = defaultdict(lambda: ZERO)
    for created_at, amount, sender_id, recipient_id in rows:
        d = _day(created_at)
        if recipient_id == user.id:
            incoming[d] += _dec(amount)
        if sender_id == user.id:
            outgoing[d] += _dec(amount)

    return ChartOut(
        days=[ChartPoint(date=d.isoformat(), incoming=incoming[d], outgoing=outgoing[d]) for d in dates]
    )


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------

async def transaction_volume(db: AsyncSession, days: int = 30) -> VolumeByType:
    since = datetime.now(timezone.utc) - timedelta(days=days)
    rows = (
        await db.execute(
            select(Transaction.type, func.coalesce(func.sum(Transaction.amount), 0), func.count(Transaction.id))
            .where(Transaction.status == "completed", Transaction.created_at >= since)
            .group_by(Transaction.type)
        )
    ).all()

    by_type = {t: ZERO for t in TYPES}
    total, count = ZERO, 0
    for tx_type, amount, n in rows:
        by_type[tx_type] = _dec(amount)
        total += _dec(amount)
        count += int(n)
    return VolumeByType(total=total, count=count, by_type=by_type)


async def admin_counts(db: AsyncSession) -> Dict[str, int]:
    return {
        "total_users": await _count(db, Profile, Profile.role == "user"),
        "active_users": await _count(db, Profile, Profile.role == "user", Profile.status == "active"),
        "pending_users": await _count(db, Profile, Profile.role == "user", Profile.status == "pending"),
        "pending_deposits": await _count(db, DepositRequest, DepositRequest.status == "pending"),
        "pending_withdrawals": await _count(db, WithdrawalRequest, WithdrawalRequest.status == "pending"),
        "pending_send_requests": await _count(db, SendRequest, SendRequest.status == "pending"),
        "open_tickets": await _count(db, SupportTicket, SupportTicket.status.in_(("open", "in_progress"))),
    }


async def admin_dashboard(db: AsyncSession) -> AdminDashboardOut:
    counts = await admin_counts(db)
    total_balance = (
        await db.execute(select(func.coalesce(func.sum(Profile.balance), 0)).where(Profile.role == "user"))
    ).scalar_one()
    recent_users = (
        await db.execute(select(Profile).order_by(Profile.created_at.desc()).limit(RECENT_LIMIT))
    ).scalars().all()

    return AdminDashboardOut(
        **counts,
        total_balance=_dec(total_balance),
        transaction_volume=await transaction_volume(db),
        recent_transactions=[TransactionOut.model_validate(t) for t in await recent_transactions(db)],
        recent_users=[ProfileOut.model_validate(p) for p in recent_users],
    )


async def status_breakdown(db: AsyncSession, model) -> StatusBreakdown:
    """Compteurs + montants par statut pour DepositRequest / WithdrawalRequest / SendRequest / Transaction."""
    rows = (
        await db.execute(
            select(model.status, func.count(model.id), func.coalesce(func.sum(model.amount), 0)).group_by(model.status)
        )
    ).all()

    counts: Dict[str, int] = {}
    amounts: Dict[str, Decimal] = {}
    for status, n, amount in rows:
        counts[status] = int(n)
        amounts[status] = _dec(amount)

    return StatusBreakdown(
        counts=counts,
        amounts=amounts,
        total_count=sum(counts.values()),
        total_amount=sum(amounts.values(), ZERO),
    )


async def transactions_report(db: AsyncSession, days: int = 30) -> TransactionsReportOut:
    start, dates = _date_range(days)
    rows = (
        await db.execute(
            select(Transaction.created_at, Transaction.type, Transaction.amount).where(
                Transaction.status == "completed", Transaction.created_at >= start
            )
        )
    ).all()

    per_day: Dict[date, Dict[str, Decimal]] = defaultdict(dict)
    counts: Dict[date, int] = defaultdict(int)
    totals: Dict[str, Decimal] = {t: ZERO for t in TYPES}
    for created_at, tx_type, amount in rows:
        d = _day(created_at)
        per_day[d][tx_type] = per_day[d].get(tx_type, ZERO) + _dec(amount)
        counts[d] += 1
        totals[tx_type] = totals.get(tx_type, ZERO) + _dec(amount)

    return TransactionsReportOut(
        days=[
            ReportDay(
                date=d.isoformat(),
                count=counts[d],
                amount=sum(per_day[d].values(), ZERO),
                by_type=per_day[d],
            )
            for d in dates
        ],
        totals=totals,
    )


async def users_report(db: AsyncSession, days: int = 30) -> UsersReportOut:
    start, dates = _date_range(days)
    created = (
        await db.execute(select(Profile.created_at).where(Profile.role == "user", Profile.created_at >= start))
    ).scalars().all()

    signups: Dict[date, int] = defaultdict(int)
    for created_at in created:
        signups[_day(created_at)] += 1

    by_status = {
        status: int(n)
        for status, n in (
            await db.execute(
                select(Profile.status, func.count(Profile.id)).where(Profile.role == "user").group_by(Profile.status)
            )
        ).all()
    }

    return UsersReportOut(
        days=[UsersReportDay(date=d.isoformat(), signups=signups[d]) for d in dates],
        by_status=by_status,
        total=sum(by_status.values()),
    )
