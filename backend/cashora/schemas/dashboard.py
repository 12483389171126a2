from __future__ import annotations

from decimal import Decimal
from typing import List

from pydantic import BaseModel

from cashora.schemas.ledger import TransactionOut
from cashora.schemas.profile import ProfileOut

"""
Schemas Dashboard (Pydantic).

Rôle (fonctionnel) :
- DTO de lecture agrégés pour les tableaux de bord utilisateur et admin (pas des lignes DB).
- Séries journalières pour les graphiques (in/out par jour, volumes par type).
"""


class UserDashboardStats(BaseModel):
    current_balance: Decimal
    total_sent: Decimal
    total_received: Decimal
    total_deposited: Decimal
    total_withdrawn: Decimal
    recent_transactions: List[TransactionOut]


class UserDashboardOut(UserDashboardStats):
    profile: ProfileOut
    unread_notifications: int
    pending_deposits: int
    pending_withdrawals: int


class ChartPoint(BaseModel):
    date: str  # "YYYY-MM-DD"
    incoming: Decimal
    outgoing: Decimal


class ChartOut(BaseModel):
    days: List[ChartPoint]


class VolumeByType(BaseModel):
    total: Decimal
    count: int
    by_type: dict[str, Decimal]


class AdminDashboardOut(BaseModel):
    total_users: int
    active_users: int
    pending_users: int
    total_balance: Decimal
    transaction_volume: VolumeByType
    pending_deposits: int
    pending_withdrawals: int
    pending_send_requests: int
    open_tickets: int
    recent_transactions: List[TransactionOut]
    recent_users: List[ProfileOut]


class StatusBreakdown(BaseModel):
    """Compteurs et montants par statut (stats dépôts / retraits / transactions)."""
    counts: dict[str, int]
    amounts: dict[str, Decimal]
    total_count: int
    total_amount: Decimal


class ReportDay(BaseModel):
    date: str
    count: int
    amount: Decimal
    by_type: dict[str, Decimal]


class TransactionsReportOut(BaseModel):
    days: List[ReportDay]
    totals: dict[str, Decimal]


class UsersReportDay(BaseModel):
    date: str
    signups: int


class UsersReportOut(BaseModel):
    days: List[UsersReportDay]
    by_status: dict[str, int]
    total: int
