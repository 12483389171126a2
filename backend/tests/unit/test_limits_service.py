from datetime import datetime, timedelta, timezone
from decimal import Decimal

from cashora.models import DepositRequest, SendRequest, Transaction, WithdrawalRequest
from cashora.services import limits_service


def test_start_of_periods_are_utc_calendar_bounds():
    now = datetime(2024, 5, 17, 15, 42, tzinfo=timezone.utc)
    assert limits_service.start_of_day(now) == datetime(2024, 5, 17, tzinfo=timezone.utc)
    assert limits_service.start_of_month(now) == datetime(2024, 5, 1, tzinfo=timezone.utc)


def test_transfer_usage_counts_completed_and_pending(seed, user, other_user):
    seed.add(Transaction(type="transfer", status="completed", amount=Decimal("100"), sender_id=user.id,
                         recipient_id=other_user.id, reference="TRF-A1"))
    seed.add(Transaction(type="transfer", status="failed", amount=Decimal("999"), sender_id=user.id,
                         recipient_id=other_user.id, reference="TRF-A2"))
    seed.add(SendRequest(sender_id=user.id, recipient_id=other_user.id, amount=Decimal("50"), status="pending"))
    seed.add(SendRequest(sender_id=user.id, recipient_id=other_user.id, amount=Decimal("70"), status="rejected"))

    limits = seed.run(lambda db: limits_service.transfer_limits(db, user))
    assert limits.daily.used == Decimal("150")
    assert limits.daily.count == 2
    assert limits.daily.remaining == limits.daily.limit - Decimal("150")


def test_yesterday_transfers_do_not_count(seed, user, other_user):
    yesterday = datetime.now(timezone.utc) - timedelta(days=1, hours=1)
    seed.add(Transaction(type="transfer", status="completed", amount=Decimal("100"), sender_id=user.id,
                         recipient_id=other_user.id, reference="TRF-OLD", created_at=yesterday))

    limits = seed.run(lambda db: limits_service.transfer_limits(db, user))
    assert limits.daily.used == Decimal("0")


def test_available_balance_excludes_pending_withdrawals(seed, user, bank_account):
    seed.add(WithdrawalRequest(user_id=user.id, bank_account_id=bank_account.id, amount=Decimal("300"),
                               reference="WDR-1", status="pending"))
    seed.add(WithdrawalRequest(user_id=user.id, bank_account_id=bank_account.id, amount=Decimal("100"),
                               reference="WDR-2", status="approved"))

    limits = seed.run(lambda db: limits_service.withdrawal_limits(db, user))
    assert limits.pending_amount == Decimal("300")
    assert limits.available_balance == Decimal("700")
    assert limits.daily.used == Decimal("300")


def test_remaining_never_negative(seed):
    user = seed.user("tight@example.com", full_name="Tight Limit", daily_limit=Decimal("100"))
    seed.add(DepositRequest(user_id=user.id, amount=Decimal("150"), depositor_name="Tight Limit",
                            reference="DEP-1", status="pending"))

    limits = seed.run(lambda db: limits_service.deposit_limits(db, user))
    assert limits.daily.used == Decimal("150")
    assert limits.daily.remaining == Decimal("0")
    assert limits.monthly.count == 1
    assert limits.min_amount == Decimal("10")
