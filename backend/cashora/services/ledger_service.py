from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from cashora.core.errors import AppHTTPException, ErrorMessages, bad_request, not_found
from cashora.core.settings import settings
from cashora.core.validation import to_decimal, validate_amount, validate_description, validate_email, validate_name
from cashora.models.bank_account import BankAccount
from cashora.models.deposit_request import DepositRequest
from cashora.models.notification import Notification
from cashora.models.profile import Profile
from cashora.models.send_request import SendRequest
from cashora.models.transaction import Transaction
from cashora.models.withdrawal_request import WithdrawalRequest
from cashora.schemas.ledger import TransactionTotals
from cashora.services import limits_service
from cashora.services.audit_service import NO_CLIENT, ClientInfo, log_activity, log_admin_action
from cashora.services.notification_service import notify_admins, notify_user
from cashora.services.platform_service import get_platform_settings

"""
Ledger Service (procédures financières).

Rôle (fonctionnel) :
- Implémente les procédures multi-étapes de la plateforme :
  create_deposit_request, approve_deposit, reject_deposit,
  create_withdrawal_request, approve_withdrawal, reject_withdrawal,
  transfer_money, create_send_request, approve_send_request, reject_send_request,
  adjust_balance, bulk_send, get_user_transaction_totals.

Garanties :
- Atomicité : chaque procédure s’exécute dans UNE transaction (commit final, rollback sur erreur).
  Notifications, journaux d’activité et audit admin sont écrits dans cette même transaction.
- Exactement-une-fois : la demande est verrouillée (SELECT ... FOR UPDATE) puis son statut
  re-vérifié sous verrou ; une demande déjà traitée renvoie 400 sans effet.
- Solde jamais négatif : les profils sont verrouillés (ordre croissant des ids, pas d’interblocage)
  et le solde re-contrôlé sous verrou, en plus de la contrainte CHECK en base.

Les verrous relisent les lignes (populate_existing) : le profil chargé par l’authentification
peut être périmé au moment du débit.
"""

log = logging.getLogger("cashora.ledger")


@dataclass
class LedgerOutcome:
    """Résultat d’une procédure : entités touchées + notifications à pousser après commit."""
    transaction: Optional[Transaction] = None
    request: Any = None
    profiles: Dict[uuid.UUID, Profile] = field(default_factory=dict)
    notifications: List[Notification] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)


@asynccontextmanager
async def atomic(db: AsyncSession):
    try:
        yield
        await db.commit()
    except Exception:
        await db.rollback()
        raise


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _reference(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10].upper()}"


def _money(amount: Decimal) -> str:
    return f"{amount:.2f} {settings.CURRENCY}"


def _insufficient() -> AppHTTPException:
    return bad_request(ErrorMessages.INSUFFICIENT_FUNDS, code="INSUFFICIENT_FUNDS")


def _check_bounds(amount: Decimal, low: Decimal, high: Decimal, label: str) -> None:
    if amount < low:
        raise bad_request(f"Minimum {label} amount is {low:.2f}", code="AMOUNT_TOO_LOW")
    if amount > high:
        raise bad_request(f"Maximum {label} amount is {high:.2f}", code="AMOUNT_TOO_HIGH")


async def _lock_profiles(db: AsyncSession, ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, Profile]:
    """Verrouille les profils dans l’ordre croissant des ids et les relit depuis la base."""
    wanted = sorted(set(ids), key=str)
    rows = (
        await db.execute(
            select(Profile)
            .where(Profile.id.in_(wanted))
            .order_by(Profile.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    ).scalars().all()
    return {p.id: p for p in rows}


async def _lock_request(db: AsyncSession, model, request_id: uuid.UUID):
    return (
        await db.execute(
            select(model)
            .where(model.id == request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    ).scalars().first()


def _ensure_pending(req, message: str) -> None:
    if req.status != "pending":
        raise bad_request(message, code="ALREADY_PROCESSED", details={"status": req.status})


def _mark_processed(req, status: str, admin_id: uuid.UUID, reason: Optional[str] = None) -> None:
    req.status = status
    req.processed_by = admin_id
    req.processed_at = _now()
    if reason is not None:
        req.rejection_reason = reason


def _require_reason(reason: Optional[str]) -> str:
    cleaned = (reason or "").strip()
    if not cleaned:
        raise bad_request("Rejection reason is required", code="REASON_REQUIRED")
    return cleaned[:500]


async def load_transaction(db: AsyncSession, transaction_id: uuid.UUID) -> Optional[Transaction]:
    """Relit une transaction avec ses parties (sender / recipient) chargées."""
    return (
        await db.execute(
            select(Transaction)
            .where(Transaction.id == transaction_id)
            .execution_options(populate_existing=True)
        )
    ).scalars().first()


# ---------------------------------------------------------------------------
# Dépôts
# ---------------------------------------------------------------------------

async def create_deposit_request(
    db: AsyncSession,
    user: Profile,
    amount: Any,
    depositor_name: str,
    *,
    client: ClientInfo = NO_CLIENT,
) -> LedgerOutcome:
    amount = validate_amount(amount)
    depositor_name = validate_name(depositor_name)

    platform = await get_platform_settings(db)
    _check_bounds(amount, platform.deposit_min, platform.deposit_max, "deposit")

    limits = await limits_service.deposit_limits(db, user)
    if limits.daily.used + amount > limits.daily.limit:
        raise bad_request("Daily deposit limit exceeded", code="LIMIT_EXCEEDED", details=limits.daily.model_dump(mode="json"))
    if limits.monthly.used + amount > limits.monthly.limit:
        raise bad_request("Monthly deposit limit exceeded", code="LIMIT_EXCEEDED", details=limits.monthly.model_dump(mode="json"))

    out = LedgerOutcome()
    async with atomic(db):
        req = DepositRequest(
            user_id=user.id,
            amount=amount,
            depositor_name=depositor_name,
            reference=_reference("DEP"),
            status="pending",
        )
        db.add(req)
        await db.flush()

        out.request = req
        out.notifications.append(
            notify_admins(
                db,
                "deposit_request",
                "New Deposit Request",
                f"{user.full_name} requested a deposit of {_money(amount)}",
                {"deposit_request_id": str(req.id), "user_id": str(user.id)},
            )
        )
        log_activity(
            db,
            user.id,
            "deposit_requested",
            description=f"Deposit request of {_money(amount)}",
            data={"deposit_request_id": str(req.id), "amount": str(amount)},
            client=client,
        )

    log.info("deposit_requested", extra={"user_id": str(user.id), "amount": str(amount), "entity_id": str(req.id)})
    return out


async def approve_deposit(
    db: AsyncSession,
    request_id: uuid.UUID,
    admin: Profile,
    *,
    note: Optional[str] = None,
    client: ClientInfo = NO_CLIENT,
) -> LedgerOutcome:
    out = LedgerOutcome()
    async with atomic(db):
        req = await _lock_request(db, DepositRequest, request_id)
        if req is None:
            raise not_found("Deposit request not found")
        _ensure_pending(req, "Deposit request already processed")

        user = (await _lock_profiles(db, [req.user_id]))[req.user_id]
        if user.status in ("closed", "suspended"):
            raise bad_request("Account is not active", code="ACCOUNT_INACTIVE", details={"status": user.status})
        user.balance = user.balance + req.amount

        tx = Transaction(
            type="deposit",
            status="completed",
            amount=req.amount,
            recipient_id=user.id,
            reference=req.reference,
            description=f"Deposit by {req.depositor_name}",
            meta={"deposit_request_id": str(req.id), "note": note},
            processed_by=admin.id,
            processed_at=_now(),
        )
        db.add(tx)
        await db.flush()

        _mark_processed(req, "approved", admin.id)
        req.transaction_id = tx.id

        out.notifications.append(
            notify_user(
                db,
                user.id,
                "deposit_approved",
                "Deposit Approved",
                f"Your deposit of {_money(req.amount)} has been approved",
                {"deposit_request_id": str(req.id), "transaction_id": str(tx.id)},
            )
        )
        log_admin_action(
            db,
            admin.id,
            "APPROVE_DEPOSIT",
            user_id=user.id,
            target_id=req.id,
            details={"amount": str(req.amount), "reference": req.reference, "note": note},
            client=client,
        )
        log_activity(
            db,
            admin.id,
            "deposit_approved",
            actor_type="admin",
            description=f"Approved deposit {req.reference}",
            data={"deposit_request_id": str(req.id), "user_id": str(user.id)},
            client=client,
        )
        out.request, out.transaction, out.profiles = req, tx, {user.id: user}

    log.info("deposit_approved", extra={"admin_id": str(admin.id), "user_id": str(req.user_id),
                                        "amount": str(req.amount), "entity_id": str(req.id)})
    return out


async def reject_deposit(
    db: AsyncSession,
    request_id: uuid.UUID,
    admin: Profile,
    reason: Optional[str],
    *,
    client: ClientInfo = NO_CLIENT,
) -> LedgerOutcome:
    reason = _require_reason(reason)
    out = LedgerOutcome()
    async with atomic(db):
        req = await _lock_request(db, DepositRequest, request_id)
        if req is None:
            raise not_found("Deposit request not found")
        _ensure_pending(req, "Deposit request already processed")

        _mark_processed(req, "rejected", admin.id, reason)

        out.notifications.append(
            notify_user(
                db,
                req.user_id,
                "deposit_rejected",
                "Deposit Rejected",
                f"Your deposit of {_money(req.amount)} was rejected: {reason}",
                {"deposit_request_id": str(req.id)},
            )
        )
        log_admin_action(
            db,
            admin.id,
            "REJECT_DEPOSIT",
            user_id=req.user_id,
            target_id=req.id,
            details={"amount": str(req.amount), "reason": reason},
            client=client,
        )
        log_activity(
            db,
            admin.id,
            "deposit_rejected",
            actor_type="admin",
            description=f"Rejected deposit {req.reference}",
            data={"deposit_request_id": str(req.id), "reason": reason},
            client=client,
        )
        out.request = req
    return out


# ---------------------------------------------------------------------------
# Retraits
# ---------------------------------------------------------------------------

async def _owned_bank_account(db: AsyncSession, user_id: uuid.UUID, bank_account_id: uuid.UUID) -> BankAccount:
    account = (
        await db.execute(
            select(BankAccount).where(BankAccount.id == bank_account_id, BankAccount.user_id == user_id)
        )
    ).scalars().first()
    if account is None:
        raise bad_request("Invalid bank account", code="INVALID_BANK_ACCOUNT")
    return account


async def check_withdrawal(db: AsyncSession, user: Profile, amount: Any, bank_account_id: uuid.UUID) -> Decimal:
    """Contrôles d’une demande de retrait (sans écriture). Retourne le montant normalisé."""
    amount = validate_amount(amount)
    await _owned_bank_account(db, user.id, bank_account_id)

    platform = await get_platform_settings(db)
    _check_bounds(amount, platform.withdrawal_min, platform.withdrawal_max, "withdrawal")

    limits = await limits_service.withdrawal_limits(db, user)
    if limits.daily.used + amount > limits.daily.limit:
        raise bad_request("Daily withdrawal limit exceeded", code="LIMIT_EXCEEDED")
    if amount > limits.available_balance:
        raise _insufficient()
    return amount


async def create_withdrawal_request(
    db: AsyncSession,
    user: Profile,
    amount: Any,
    bank_account_id: uuid.UUID,
    *,
    client: ClientInfo = NO_CLIENT,
) -> LedgerOutcome:
    out = LedgerOutcome()
    async with atomic(db):
        # Verrou du profil : sérialise les demandes concurrentes du même utilisateur
        locked = (await _lock_profiles(db, [user.id]))[user.id]
        amount = await check_withdrawal(db, locked, amount, bank_account_id)

        req = WithdrawalRequest(
            user_id=locked.id,
            bank_account_id=bank_account_id,
            amount=amount,
            reference=_reference("WDR"),
            status="pending",
        )
        db.add(req)
        await db.flush()

        out.request = req
        out.notifications.append(
            notify_admins(
                db,
                "withdrawal_request",
                "New Withdrawal Request",
                f"{locked.full_name} requested a withdrawal of {_money(amount)}",
                {"withdrawal_request_id": str(req.id), "user_id": str(locked.id)},
            )
        )
        log_activity(
            db,
            locked.id,
            "withdrawal_requested",
            description=f"Withdrawal request of {_money(amount)}",
            data={"withdrawal_request_id": str(req.id), "amount": str(amount)},
            client=client,
        )

    log.info("withdrawal_requested", extra={"user_id": str(user.id), "amount": str(amount), "entity_id": str(req.id)})
    return out


async def approve_withdrawal(
    db: AsyncSession,
    request_id: uuid.UUID,
    admin: Profile,
    *,
    note: Optional[str] = None,
    client: ClientInfo = NO_CLIENT,
) -> LedgerOutcome:
    out = LedgerOutcome()
    async with atomic(db):
        req = await _lock_request(db, WithdrawalRequest, request_id)
        if req is None:
            raise not_found("Withdrawal request not found")
        _ensure_pending(req, "Withdrawal request already processed")

        user = (await _lock_profiles(db, [req.user_id]))[req.user_id]
        if user.balance < req.amount:
            raise _insufficient()
        user.balance = user.balance - req.amount

        account = await db.get(BankAccount, req.bank_account_id) if req.bank_account_id else None
        bank_meta = {
            "bank_name": account.bank.name if account and account.bank else None,
            "account_number": account.account_number if account else None,
            "account_name": account.account_name if account else None,
        }

        tx = Transaction(
            type="withdrawal",
            status="completed",
            amount=req.amount,
            sender_id=user.id,
            reference=req.reference,
            description="Withdrawal to bank account",
            meta={"withdrawal_request_id": str(req.id), "note": note, **bank_meta},
            processed_by=admin.id,
            processed_at=_now(),
        )
        db.add(tx)
        await db.flush()

        _mark_processed(req, "approved", admin.id)
        req.transaction_id = tx.id

        out.notifications.append(
            notify_user(
                db,
                user.id,
                "withdrawal_approved",
                "Withdrawal Approved",
                f"Your withdrawal of {_money(req.amount)} has been approved",
                {"withdrawal_request_id": str(req.id), "transaction_id": str(tx.id)},
            )
        )
        log_admin_action(
            db,
            admin.id,
            "APPROVE_WITHDRAWAL",
            user_id=user.id,
            target_id=req.id,
            details={"amount": str(req.amount), "reference": req.reference, "note": note},
            client=client,
        )
        log_activity(
            db,
            admin.id,
            "withdrawal_approved",
            actor_type="admin",
            description=f"Approved withdrawal {req.reference}",
            data={"withdrawal_request_id": str(req.id), "user_id": str(user.id)},
            client=client,
        )
        out.request, out.transaction, out.profiles = req, tx, {user.id: user}
        out.details = bank_meta

    log.info("withdrawal_approved", extra={"admin_id": str(admin.id), "user_id": str(req.user_id),
                                           "amount": str(req.amount), "entity_id": str(req.id)})
    return out


async def reject_withdrawal(
    db: AsyncSession,
    request_id: uuid.UUID,
    admin: Profile,
    reason: Optional[str],
    *,
    client: ClientInfo = NO_CLIENT,
) -> LedgerOutcome:
    reason = _require_reason(reason)
    out = LedgerOutcome()
    async with atomic(db):
        req = await _lock_request(db, WithdrawalRequest, request_id)
        if req is None:
            raise not_found("Withdrawal request not found")
        _ensure_pending(req, "Withdrawal request already processed")

        _mark_processed(req, "rejected", admin.id, reason)

        out.notifications.append(
            notify_user(
                db,
                req.user_id,
                "withdrawal_rejected",
                "Withdrawal Rejected",
                f"Your withdrawal of {_money(req.amount)} was rejected: {reason}",
                {"withdrawal_request_id": str(req.id)},
            )
        )
        log_admin_action(
            db,
            admin.id,
            "REJECT_WITHDRAWAL",
            user_id=req.user_id,
            target_id=req.id,
            details={"amount": str(req.amount), "reason": reason},
            client=client,
        )
        log_activity(
            db,
            admin.id,
            "withdrawal_rejected",
            actor_type="admin",
            description=f"Rejected withdrawal {req.reference}",
            data={"withdrawal_request_id": str(req.id), "reason": reason},
            client=client,
        )
        out.request = req
    return out


# ---------------------------------------------------------------------------
# Transferts
# ---------------------------------------------------------------------------

def _precheck_transfer(sender_id: uuid.UUID, recipient_id: uuid.UUID, amount: Any) -> Decimal:
    amount = validate_amount(amount)
    if sender_id == recipient_id:
        raise bad_request("Cannot send money to yourself", code="SELF_TRANSFER")
    return amount


async def _check_transfer_locked(
    db: AsyncSession, sender: Profile, recipient: Optional[Profile], amount: Decimal, *, check_balance: bool = True
) -> None:
    """Contrôles d’un transfert, profils déjà chargés (et verrouillés le cas échéant)."""
    if recipient is None:
        raise not_found("Recipient not found")
    if recipient.status != "active":
        raise bad_request("Recipient account is not active", code="RECIPIENT_INACTIVE")

    platform = await get_platform_settings(db)
    _check_bounds(amount, platform.sending_min, platform.sending_max, "sending")

    limits = await limits_service.transfer_limits(db, sender)
    if limits.daily.used + amount > limits.daily.limit:
        raise bad_request("Daily transfer limit exceeded", code="LIMIT_EXCEEDED")

    if check_balance and amount > await limits_service.available_balance(db, sender):
        raise _insufficient()


async def validate_transfer(db: AsyncSession, sender: Profile, recipient_id: uuid.UUID, amount: Any) -> Decimal:
    """Contrôles d’un transfert sans écriture (pré-validation côté formulaire)."""
    amount = _precheck_transfer(sender.id, recipient_id, amount)
    recipient = await db.get(Profile, recipient_id)
    await _check_transfer_locked(db, sender, recipient, amount)
    return amount


def _execute_transfer(
    db: AsyncSession,
    sender: Profile,
    recipient: Profile,
    amount: Decimal,
    description: Optional[str],
    out: LedgerOutcome,
    meta: Optional[Dict[str, Any]] = None,
) -> Transaction:
    sender.balance = sender.balance - amount
    recipient.balance = recipient.balance + amount

    tx = Transaction(
        type="transfer",
        status="completed",
        amount=amount,
        sender_id=sender.id,
        recipient_id=recipient.id,
        reference=_reference("TRF"),
        description=description,
        meta=meta,
        processed_at=_now(),
    )
    db.add(tx)

    out.notifications.append(
        notify_user(
            db,
            sender.id,
            "money_sent",
            "Money Sent",
            f"You sent {_money(amount)} to {recipient.full_name}",
            {"recipient_id": str(recipient.id), "amount": str(amount)},
        )
    )
    out.notifications.append(
        notify_user(
            db,
            recipient.id,
            "money_received",
            "Money Received",
            f"You received {_money(amount)} from {sender.full_name}",
            {"sender_id": str(sender.id), "amount": str(amount)},
        )
    )
    out.transaction = tx
    out.profiles = {sender.id: sender, recipient.id: recipient}
    return tx


async def transfer_money(
    db: AsyncSession,
    sender: Profile,
    recipient_id: uuid.UUID,
    amount: Any,
    description: Optional[str] = None,
    *,
    client: ClientInfo = NO_CLIENT,
) -> LedgerOutcome:
    amount = _precheck_transfer(sender.id, recipient_id, amount)
    description = validate_description(description)

    out = LedgerOutcome()
    async with atomic(db):
        locked = await _lock_profiles(db, [sender.id, recipient_id])
        me = locked[sender.id]
        recipient = locked.get(recipient_id)
        await _check_transfer_locked(db, me, recipient, amount)

        tx = _execute_transfer(db, me, recipient, amount, description, out)
        await db.flush()

        log_activity(
            db,
            me.id,
            "money_sent",
            description=f"Sent {_money(amount)} to {recipient.full_name}",
            data={"transaction_id": str(tx.id), "recipient_id": str(recipient.id)},
            client=client,
        )

    log.info("transfer_completed", extra={"user_id": str(sender.id), "amount": str(amount), "entity_id": str(tx.id)})
    return out


async def create_send_request(
    db: AsyncSession,
    sender: Profile,
    recipient_id: uuid.UUID,
    amount: Any,
    description: Optional[str] = None,
    *,
    client: ClientInfo = NO_CLIENT,
) -> LedgerOutcome:
    amount = _precheck_transfer(sender.id, recipient_id, amount)
    description = validate_description(description)

    out = LedgerOutcome()
    async with atomic(db):
        locked = await _lock_profiles(db, [sender.id])
        me = locked[sender.id]
        recipient = await db.get(Profile, recipient_id)
        await _check_transfer_locked(db, me, recipient, amount)

        req = SendRequest(
            sender_id=me.id,
            recipient_id=recipient_id,
            amount=amount,
            description=description,
            status="pending",
        )
        db.add(req)
        await db.flush()

        out.request = req
        out.notifications.append(
            notify_admins(
                db,
                "send_request",
                "New Sending Request",
                f"{me.full_name} requested to send {_money(amount)} to {recipient.full_name}",
                {"send_request_id": str(req.id)},
            )
        )
        log_activity(
            db,
            me.id,
            "send_requested",
            description=f"Sending request of {_money(amount)}",
            data={"send_request_id": str(req.id)},
            client=client,
        )
    return out


async def approve_send_request(
    db: AsyncSession,
    request_id: uuid.UUID,
    admin: Profile,
    *,
    client: ClientInfo = NO_CLIENT,
) -> LedgerOutcome:
    out = LedgerOutcome()
    async with atomic(db):
        req = await _lock_request(db, SendRequest, request_id)
        if req is None:
            raise not_found("Sending request not found")
        _ensure_pending(req, "Can only process pending requests")

        locked = await _lock_profiles(db, [req.sender_id, req.recipient_id])
        sender = locked.get(req.sender_id)
        recipient = locked.get(req.recipient_id)
        if sender is None or recipient is None:
            raise not_found("Recipient not found")
        if sender.status != "active":
            raise bad_request("Sender account is not active", code="SENDER_INACTIVE")
        if recipient.status != "active":
            raise bad_request("Recipient account is not active", code="RECIPIENT_INACTIVE")
        # Le plafond a été réservé à la création : seul le solde est re-contrôlé
        if req.amount > await limits_service.available_balance(db, sender):
            raise _insufficient()

        tx = _execute_transfer(
            db, sender, recipient, req.amount, req.description, out, meta={"send_request_id": str(req.id)}
        )
        tx.processed_by = admin.id
        await db.flush()

        _mark_processed(req, "approved", admin.id)
        req.transaction_id = tx.id

        log_admin_action(
            db,
            admin.id,
            "APPROVE_SEND_REQUEST",
            user_id=sender.id,
            target_id=req.id,
            details={"amount": str(req.amount), "recipient_id": str(recipient.id)},
            client=client,
        )
        out.request = req
    return out


async def reject_send_request(
    db: AsyncSession,
    request_id: uuid.UUID,
    admin: Profile,
    reason: Optional[str],
    *,
    client: ClientInfo = NO_CLIENT,
) -> LedgerOutcome:
    reason = _require_reason(reason)
    out = LedgerOutcome()
    async with atomic(db):
        req = await _lock_request(db, SendRequest, request_id)
        if req is None:
            raise not_found("Sending request not found")
        _ensure_pending(req, "Can only process pending requests")

        _mark_processed(req, "rejected", admin.id, reason)

        out.notifications.append(
            notify_user(
                db,
                req.sender_id,
                "send_request_rejected",
                "Sending Request Rejected",
                f"Your request to send {_money(req.amount)} was rejected: {reason}",
                {"send_request_id": str(req.id)},
            )
        )
        log_admin_action(
            db,
            admin.id,
            "REJECT_SEND_REQUEST",
            user_id=req.sender_id,
            target_id=req.id,
            details={"amount": str(req.amount), "reason": reason},
            client=client,
        )
        out.request = req
    return out


# ---------------------------------------------------------------------------
# Opérations admin
# ---------------------------------------------------------------------------

async def adjust_balance(
    db: AsyncSession,
    admin: Profile,
    user_id: uuid.UUID,
    new_balance: Any,
    note: Optional[str] = None,
    *,
    client: ClientInfo = NO_CLIENT,
) -> LedgerOutcome:
    """Fixe le solde à `new_balance` ; la différence est tracée en `admin_adjustment`."""
    new_balance = to_decimal(new_balance)
    if not new_balance.is_finite() or new_balance < 0:
        raise bad_request("Balance cannot be negative", code="INVALID_AMOUNT")
    new_balance = Decimal("0.00") if new_balance == 0 else validate_amount(new_balance)

    out = LedgerOutcome()
    async with atomic(db):
        locked = await _lock_profiles(db, [user_id])
        user = locked.get(user_id)
        if user is None:
            raise not_found("User not found")

        old_balance = user.balance
        difference = new_balance - old_balance
        user.balance = new_balance

        if difference != 0:
            tx = Transaction(
                type="admin_adjustment",
                status="completed",
                amount=abs(difference),
                recipient_id=user.id if difference > 0 else None,
                sender_id=user.id if difference < 0 else None,
                reference=_reference("ADJ"),
                description=note or "Balance adjustment",
                meta={"old_balance": str(old_balance), "new_balance": str(new_balance)},
                processed_by=admin.id,
                processed_at=_now(),
            )
            db.add(tx)
            await db.flush()
            out.transaction = tx

        out.notifications.append(
            notify_user(
                db,
                user.id,
                "balance_update",
                "Balance Updated",
                f"Your balance has been updated to {_money(new_balance)}",
                {"old_balance": str(old_balance), "new_balance": str(new_balance)},
            )
        )
        out.details = {
            "old_balance": str(old_balance),
            "new_balance": str(new_balance),
            "difference": str(difference),
            "note": note,
        }
        log_admin_action(
            db,
            admin.id,
            "UPDATE_USER_BALANCE",
            user_id=user.id,
            target_id=user.id,
            details=out.details,
            client=client,
        )
        out.profiles = {user.id: user}
    return out


async def find_profiles_by_email(db: AsyncSession, emails: Iterable[str]) -> tuple[List[Profile], List[str]]:
    """Résout des emails en profils. Retourne (trouvés, emails inconnus)."""
    normalized = []
    for e in emails:
        try:
            normalized.append(validate_email(e))
        except AppHTTPException:
            normalized.append((e or "").strip().lower())
    wanted = list(dict.fromkeys(normalized))

    found = (await db.execute(select(Profile).where(Profile.email.in_(wanted)))).scalars().all()
    found_emails = {p.email for p in found}
    missing = [e for e in wanted if e not in found_emails]
    return list(found), missing


async def bulk_send(
    db: AsyncSession,
    admin: Profile,
    emails: Iterable[str],
    amount: Any,
    description: Optional[str] = None,
    *,
    client: ClientInfo = NO_CLIENT,
) -> LedgerOutcome:
    amount = validate_amount(amount)
    description = validate_description(description)

    found, missing = await find_profiles_by_email(db, emails)
    if missing or not found:
        raise bad_request("One or more recipients not found", code="RECIPIENTS_NOT_FOUND", details={"missing": missing})

    out = LedgerOutcome()
    async with atomic(db):
        locked = await _lock_profiles(db, [p.id for p in found])
        for user in locked.values():
            user.balance = user.balance + amount
            db.add(
                Transaction(
                    type="admin_transfer",
                    status="completed",
                    amount=amount,
                    recipient_id=user.id,
                    reference=_reference("ADM"),
                    description=description,
                    processed_by=admin.id,
                    processed_at=_now(),
                )
            )
            out.notifications.append(
                notify_user(
                    db,
                    user.id,
                    "money_received",
                    "Money Received",
                    f"You received {_money(amount)} from Cashora",
                    {"amount": str(amount)},
                )
            )

        out.details = {"recipient_count": len(locked), "total_amount": str(amount * len(locked))}
        log_admin_action(db, admin.id, "BULK_SEND", target_id="system", details=out.details, client=client)
        out.profiles = locked
    return out


# ---------------------------------------------------------------------------
# Agrégats
# ---------------------------------------------------------------------------

async def get_user_transaction_totals(db: AsyncSession, user_id: uuid.UUID) -> TransactionTotals:
    """Totaux `completed` d’un profil (envoyé, reçu, déposé, retiré)."""

    def _sum_when(*conds):
        return func.coalesce(func.sum(case((and_(*conds), Transaction.amount), else_=0)), 0)

    stmt = select(
        _sum_when(Transaction.sender_id == user_id, Transaction.type == "transfer"),
        _sum_when(Transaction.recipient_id == user_id, Transaction.type.in_(("transfer", "admin_transfer"))),
        _sum_when(Transaction.recipient_id == user_id, Transaction.type == "deposit"),
        _sum_when(Transaction.sender_id == user_id, Transaction.type == "withdrawal"),
    ).where(
        Transaction.status == "completed",
        or_(Transaction.sender_id == user_id, Transaction.recipient_id == user_id),
    )
    sent, received, deposited, withdrawn = (await db.execute(stmt)).one()

    dec = limits_service._dec
    return TransactionTotals(
        total_sent=dec(sent),
        total_received=dec(received),
        total_deposited=dec(deposited),
        total_withdrawn=dec(withdrawn),
    )
