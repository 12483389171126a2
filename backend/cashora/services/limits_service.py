from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cashora.models.deposit_request import DepositRequest
from cashora.models.profile import Profile
from cashora.models.send_request import SendRequest
from cashora.models.transaction import Transaction
from cashora.models.withdrawal_request import WithdrawalRequest
from cashora.schemas.ledger import (
    DepositLimitsOut,
    PeriodUsage,
    TransferLimitsOut,
    WithdrawalLimitsOut,
)
from cashora.services.platform_service import get_platform_settings

"""
Limits Service.

Rôle (fonctionnel) :
- Calcule la consommation des plafonds d’un profil sur les périodes calendaires UTC :
  - dépôts : jour + mois (daily_limit / monthly_limit)
  - retraits : jour (withdraw_limit)
  - transferts : jour (send_limit)
- “Consommé” = mouvements `completed` de la période + demandes `pending` créées sur la période
  (une demande en attente réserve déjà le plafond).
- Expose le solde disponible = solde - retraits en attente.

Ces calculs servent à la fois aux écrans (GET .../limits) et aux contrôles du ledger.
"""

ZERO = Decimal("0.00")


def _dec(value: Any) -> Decimal:
    if value is None:
        return ZERO
    return Decimal(str(value)).quantize(Decimal("0.01"))


def start_of_day(now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return datetime(now.year, now.month, now.day, tzinfo=timezone.utc)


def start_of_month(now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return datetime(now.year, now.month, 1, tzinfo=timezone.utc)


def _usage(limit: Decimal, used: Decimal, count: int) -> PeriodUsage:
    return PeriodUsage(limit=limit, used=used, remaining=max(limit - used, ZERO), count=count)


async def _sum_count(db: AsyncSession, model, *conditions) -> tuple[Decimal, int]:
    row = (
        await db.execute(select(func.coalesce(func.sum(model.amount), 0), func.count(model.id)).where(*conditions))
    ).one()
    return _dec(row[0]), int(row[1] or 0)


async def _deposits_since(db: AsyncSession, user: Profile, since: datetime) -> tuple[Decimal, int]:
    done, done_n = await _sum_count(
        db,
        Transaction,
        Transaction.recipient_id == user.id,
        Transaction.type == "deposit",
        Transaction.status == "completed",
        Transaction.created_at >= since,
    )
    pending, pending_n = await _sum_count(
        db,
        DepositRequest,
        DepositRequest.user_id == user.id,
        DepositRequest.status == "pending",
        DepositRequest.created_at >= since,
    )
    return done + pending, done_n + pending_n


async def deposit_limits(db: AsyncSession, user: Profile, now: Optional[datetime] = None) -> DepositLimitsOut:
    platform = await get_platform_settings(db)
    day_used, day_n = await _deposits_since(db, user, start_of_day(now))
    month_used, month_n = await _deposits_since(db, user, start_of_month(now))
    return DepositLimitsOut(
        daily=_usage(_dec(user.daily_limit), day_used, day_n),
        monthly=_usage(_dec(user.monthly_limit), month_used, month_n),
        min_amount=_dec(platform.deposit_min),
        max_amount=_dec(platform.deposit_max),
    )


async def pending_withdrawals_total(db: AsyncSession, user_id) -> Decimal:
    total, _ = await _sum_count(
        db,
        WithdrawalRequest,
        WithdrawalRequest.user_id == user_id,
        WithdrawalRequest.status == "pending",
    )
    return total


async def available_balance(db: AsyncSession, user: Profile) -> Decimal:
    """Solde utilisable = solde - retraits en attente (jamais négatif)."""
    return max(_dec(user.balance) - await pending_withdrawals_total(db, user.id), ZERO)


async def withdrawal_limits(db: AsyncSession, user: Profile, now: Optional[datetime] = None) -> WithdrawalLimitsOut:
    platform = await get_platform_settings(db)
    since = start_of_day(now)

    done, done_n = await _sum_count(
        db,
        Transaction,
        Transaction.sender_id == user.id,
        Transaction.type == "withdrawal",
        Transaction.status == "completed",
        Transaction.created_at >= since,
    )
    pending_today, pending_n = await _sum_count(
        db,
        WithdrawalRequest,
        WithdrawalRequest.user_id == user.id,
        WithdrawalRequest.status == "pending",
        WithdrawalRequest.created_at >= since,
    )
    pending_all = await pending_withdrawals_total(db, user.id)

    return WithdrawalLimitsOut(
        daily=_usage(_dec(user.withdraw_limit), done + pending_today, done_n + pending_n),
        pending_amount=pending_all,
        available_balance=max(_dec(user.balance) - pending_all, ZERO),
        min_amount=_dec(platform.withdrawal_min),
        max_amount=_dec(platform.withdrawal_max),
    )


async def transfer_limits(db: AsyncSession, user: Profile, now: Optional[datetime] = None) -> TransferLimitsOut:
    platform = await get_platform_settings(db)
    since = start_of_day(now)

    done, done_n = await _sum_count(
        db,
        Transaction,
        Transaction.sender_id == user.id,
        Transaction.type == "transfer",
        Transaction.status == "completed",
        Transaction.created_at >= since,
    )
    pending, pending_n = await _sum_count(
        db,
        SendRequest,
        SendRequest.sender_id == user.id,
        SendRequest.status == "pending",
        SendRequest.created_at >= since,
    )
    return TransferLimitsOut(
        daily=_usage(_dec(user.send_limit), done + pending, done_n + pending_n),
        min_amount=_dec(platform.sending_min),
        max_amount=_dec(platform.sending_max),
    )
