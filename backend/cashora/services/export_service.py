from __future__ import annotations

import csv
import io
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import HRFlowable, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from cashora.core.settings import settings
from cashora.models.bank_account import BankAccount
from cashora.models.profile import Profile
from cashora.models.support_ticket import SupportTicket
from cashora.models.transaction import Transaction
from cashora.schemas.banks import BankAccountOut
from cashora.schemas.ledger import TransactionOut
from cashora.schemas.profile import ProfileOut

"""
Export Service.

Rôle (fonctionnel) :
- Export CSV de l’historique de transactions d’un utilisateur.
- Reçu PDF d’une transaction (reportlab, une page).
- Export JSON “portabilité” d’un compte : profil, transactions, comptes bancaires, tickets.
"""

CSV_COLUMNS = ["date", "reference", "type", "status", "direction", "amount", "counterparty", "description"]

BRAND = colors.HexColor("#0F766E")


def _direction(tx: Transaction, owner_id) -> str:
    if tx.recipient_id == owner_id and tx.sender_id != owner_id:
        return "in"
    if tx.sender_id == owner_id:
        return "out"
    return "-"


def _counterparty(tx: Transaction, owner_id) -> str:
    other = tx.recipient if tx.sender_id == owner_id else tx.sender
    if other is None:
        return "Cashora" if tx.type != "withdrawal" else "Bank"
    return other.full_name


async def user_transactions(db: AsyncSession, user_id) -> List[Transaction]:
    rows = (
        await db.execute(
            select(Transaction)
            .where(or_(Transaction.sender_id == user_id, Transaction.recipient_id == user_id))
            .order_by(Transaction.created_at.desc())
        )
    ).scalars().all()
    return list(rows)


def transactions_csv(transactions: Iterable[Transaction], owner_id) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(CSV_COLUMNS)
    for tx in transactions:
        writer.writerow(
            [
                tx.created_at.isoformat() if tx.created_at else "",
                tx.reference,
                tx.type,
                tx.status,
                _direction(tx, owner_id),
                f"{tx.amount:.2f}",
                _counterparty(tx, owner_id),
                tx.description or "",
            ]
        )
    return buf.getvalue()


def build_receipt_pdf(tx: Transaction, owner: Profile) -> bytes:
    """Reçu PDF (A4) : référence, type, montant, statut, parties, date."""
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=0.75 * inch,
        leftMargin=0.75 * inch,
        topMargin=1 * inch,
        bottomMargin=1 * inch,
        title=f"Receipt {tx.reference}",
    )

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "ReceiptTitle",
        parent=styles["Heading1"],
        fontSize=18,
        spaceAfter=16,
        alignment=TA_CENTER,
        textColor=BRAND,
    )
    small = ParagraphStyle("ReceiptSmall", parent=styles["Normal"], fontSize=9, textColor=colors.grey)

    rows = [
        ["Reference:", tx.reference],
        ["Type:", tx.type.replace("_", " ").title()],
        ["Amount:", f"{tx.amount:.2f} {settings.CURRENCY}"],
        ["Status:", tx.status.title()],
        ["From:", tx.sender.full_name if tx.sender else "Cashora"],
        ["To:", tx.recipient.full_name if tx.recipient else "Bank account"],
        ["Date:", tx.created_at.strftime("%Y-%m-%d %H:%M UTC") if tx.created_at else "-"],
    ]
    if tx.description:
        rows.append(["Description:", tx.description])

    table = Table(rows, colWidths=[1.6 * inch, 4.4 * inch])
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, -1), colors.HexColor("#F8F9FA")),
                ("TEXTCOLOR", (0, 0), (0, -1), BRAND),
                ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 11),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 8),
                ("TOPPADDING", (0, 0), (-1, -1), 8),
                ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#DEE2E6")),
            ]
        )
    )

    content = [
        Paragraph(f"{settings.APP_NAME} Transaction Receipt", title_style),
        HRFlowable(width="100%", thickness=1, color=BRAND),
        Spacer(1, 16),
        table,
        Spacer(1, 24),
        Paragraph(
            f"Issued to {owner.full_name} ({owner.email}) on "
            f"{datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M UTC')}",
            small,
        ),
    ]
    doc.build(content)
    return buffer.getvalue()


async def account_export(db: AsyncSession, user: Profile) -> Dict[str, Any]:
    transactions = await user_transactions(db, user.id)
    accounts = (
        await db.execute(select(BankAccount).where(BankAccount.user_id == user.id))
    ).scalars().all()
    tickets = (
        await db.execute(select(SupportTicket).where(SupportTicket.user_id == user.id))
    ).scalars().all()

    return {
        "exported_at": datetime.now(timezone.utc).isoformat(),
        "profile": ProfileOut.model_validate(user).model_dump(mode="json"),
        "transactions": [TransactionOut.model_validate(t).model_dump(mode="json", by_alias=True) for t in transactions],
        "bank_accounts": [BankAccountOut.model_validate(a).model_dump(mode="json") for a in accounts],
        "support_tickets": [
            {
                "id": str(t.id),
                "subject": t.subject,
                "status": t.status,
                "priority": t.priority,
                "created_at": t.created_at.isoformat() if t.created_at else None,
            }
            for t in tickets
        ],
    }
