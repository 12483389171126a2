from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from cashora.core.rate_limit import rate_limiter
from cashora.core.security import create_token, hash_password
from cashora.core.storage import storage
from cashora.db.base import Base
from cashora.db.session import get_db
from cashora.main import app
from cashora.models import Bank, BankAccount, Profile
from cashora.services.email_service import email_service

"""
Fixtures de tests.

Rôle (fonctionnel) :
- Base SQLite (aiosqlite) par test, schéma créé depuis Base.metadata.
- Remplace la dépendance get_db de l’app par une session sur cette base.
- Fournit un TestClient FastAPI et des helpers de données (profils, banques, comptes bancaires).

Notes :
- NullPool : chaque session ouvre sa propre connexion, ce qui permet de préparer les données
  avec asyncio.run() puis d’appeler l’API dans la boucle du TestClient.
- Les compteurs de rate limit et la boîte d’envoi email sont remis à zéro entre deux tests.
"""

PASSWORD = "Passw0rd1"


class Seed:
    """Écrit des données de test directement en base (hors API)."""

    def __init__(self, factory: sessionmaker) -> None:
        self._factory = factory

    def run(self, fn: Callable[[AsyncSession], Awaitable[Any]]) -> Any:
        async def _go():
            async with self._factory() as session:
                result = await fn(session)
                await session.commit()
                return result

        return asyncio.run(_go())

    def user(
        self,
        email: str = "abebe@example.com",
        *,
        full_name: str = "Abebe Kebede",
        role: str = "user",
        status: str = "active",
        balance: str = "0",
        password: str = PASSWORD,
        **fields: Any,
    ) -> Profile:
        async def _add(session: AsyncSession) -> Profile:
            user = Profile(
                email=email,
                full_name=full_name,
                password_hash=hash_password(password),
                role=role,
                status=status,
                balance=Decimal(balance),
                **fields,
            )
            session.add(user)
            await session.flush()
            return user

        return self.run(_add)

    def bank(self, code: str = "CBE", name: str = "Commercial Bank of Ethiopia", status: str = "active") -> Bank:
        async def _add(session: AsyncSession) -> Bank:
            bank = Bank(code=code, name=name, status=status)
            session.add(bank)
            await session.flush()
            return bank

        return self.run(_add)

    def bank_account(self, user: Profile, bank: Bank, number: str = "1000200030", default: bool = True) -> BankAccount:
        async def _add(session: AsyncSession) -> BankAccount:
            account = BankAccount(
                user_id=user.id,
                bank_id=bank.id,
                account_number=number,
                account_name=user.full_name,
                is_default=default,
            )
            session.add(account)
            await session.flush()
            return account

        return self.run(_add)

    def add(self, obj: Any) -> Any:
        async def _add(session: AsyncSession) -> Any:
            session.add(obj)
            await session.flush()
            return obj

        return self.run(_add)

    def get(self, model, ident) -> Optional[Any]:
        async def _get(session: AsyncSession):
            return await session.get(model, ident)

        return self.run(_get)

    def all(self, stmt) -> list:
        async def _all(session: AsyncSession):
            return list((await session.execute(stmt)).scalars().all())

        return self.run(_all)

    def balance(self, user: Profile) -> Decimal:
        return self.get(Profile, user.id).balance


@pytest.fixture(autouse=True)
def _isolation(tmp_path, monkeypatch):
    rate_limiter.reset()
    email_service.outbox.clear()
    monkeypatch.setattr(storage, "root", tmp_path / "storage")
    monkeypatch.setattr(storage, "private_root", tmp_path / "private")
    yield
    rate_limiter.reset()


@pytest.fixture
def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'cashora.db'}", poolclass=NullPool)

    async def _create():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(_create())
    yield sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    asyncio.run(engine.dispose())


@pytest.fixture
def seed(session_factory) -> Seed:
    return Seed(session_factory)


@pytest.fixture
def client(session_factory):
    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth():
    def _headers(user: Profile) -> dict:
        return {"Authorization": f"Bearer {create_token(user.id, role=user.role)}"}

    return _headers


@pytest.fixture
def user(seed) -> Profile:
    return seed.user("abebe@example.com", full_name="Abebe Kebede", balance="1000")


@pytest.fixture
def other_user(seed) -> Profile:
    return seed.user("sara@example.com", full_name="Sara Tadesse", balance="200")


@pytest.fixture
def admin(seed) -> Profile:
    return seed.user("admin@cashora.app", full_name="Platform Admin", role="admin")


@pytest.fixture
def bank(seed) -> Bank:
    return seed.bank()


@pytest.fixture
def bank_account(seed, user, bank) -> BankAccount:
    return seed.bank_account(user, bank)
