"""
Shared fixtures.

The app reads its settings at import time, so the test database and secret
are put in the environment before anything from `app` is imported.
"""
import os
import tempfile
from datetime import date
from decimal import Decimal

_DB_FILE = os.path.join(tempfile.gettempdir(), "waste_erp_test.db")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_FILE}"
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")

import httpx
import pytest

from app.core.security import create_access_token, get_password_hash
from app.database import async_session_factory, drop_db, engine, init_db
from app.main import app
from app.models.company import Company, CompanyMaterial
from app.models.inward import InwardEntry
from app.models.outward import OutwardEntry
from app.models.transporter import Transporter
from app.models.user import User, UserRole
from app.services.settings_service import SettingsService


@pytest.fixture(autouse=True)
async def database():
    """Fresh schema with default settings for every test."""
    await drop_db()
    await init_db()
    async with async_session_factory() as session:
        await SettingsService(session).seed_defaults()
    yield
    await engine.dispose()


@pytest.fixture
async def db():
    async with async_session_factory() as session:
        yield session


@pytest.fixture
async def client():
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ==================== USERS ====================

async def _make_user(db, role: UserRole, email: str, password: str = "secret123") -> User:
    user = User(
        email=email,
        name=role.value.title(),
        password_hash=get_password_hash(password),
        role=role.value,
        is_active=True,
    )
    db.add(user)
    await db.commit()
    return user


def auth_headers(user: User) -> dict:
    token = create_access_token(user.id, user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def superadmin(db):
    return await _make_user(db, UserRole.SUPERADMIN, "owner@wastecorp.in")


@pytest.fixture
async def admin(db):
    return await _make_user(db, UserRole.ADMIN, "manager@wastecorp.in")


@pytest.fixture
async def employee(db):
    return await _make_user(db, UserRole.EMPLOYEE, "clerk@wastecorp.in")


# ==================== MASTER DATA ====================

@pytest.fixture
async def company(db):
    company = Company(
        name="Acme Chemicals",
        gst_number="27AAACA1234A1Z5",
        address="Plot 4, MIDC Taloja",
        city="Navi Mumbai",
    )
    company.materials = [
        CompanyMaterial(material_name="Spent Solvent", rate=Decimal("100"), unit="MT"),
        CompanyMaterial(material_name="ETP Sludge", rate=Decimal("2500"), unit="MT"),
    ]
    db.add(company)
    await db.commit()
    return company


@pytest.fixture
async def transporter(db):
    transporter = Transporter(transporter_code="TR-001", name="Speedy Logistics", gst_number="27AABCS9999Q1Z1")
    db.add(transporter)
    await db.commit()
    return transporter


@pytest.fixture
async def other_company(db):
    company = Company(name="Bharat Pharma", gst_number="24AABCB4321K1Z2", city="Ankleshwar")
    db.add(company)
    await db.commit()
    return company


@pytest.fixture
async def other_transporter(db):
    transporter = Transporter(transporter_code="TR-002", name="Western Haulers", gst_number="24AAFCW1111R1Z9")
    db.add(transporter)
    await db.commit()
    return transporter


@pytest.fixture
def make_inward(db, company):
    """Factory for inward entries on the `company` fixture."""
    counter = {"n": 0}

    async def _make(
        manifest_number=None,
        waste_name="Spent Solvent",
        quantity="10",
        unit="MT",
        rate=None,
        entry_date=date(2024, 6, 10),
    ) -> InwardEntry:
        counter["n"] += 1
        n = counter["n"]
        entry = InwardEntry(
            sr_no=n,
            date=entry_date,
            lot_number=f"LOT-TEST-{n:04d}",
            company_id=company.id,
            manifest_number=manifest_number or f"MAN-{n:03d}",
            waste_name=waste_name,
            quantity=Decimal(quantity),
            unit=unit,
            rate=Decimal(rate) if rate is not None else None,
        )
        db.add(entry)
        await db.commit()
        return entry

    return _make


@pytest.fixture
def make_outward(db, transporter):
    counter = {"n": 0}

    async def _make(
        manifest_number=None,
        quantity="20",
        unit="MT",
        rate="500",
        amount=None,
        entry_date=date(2024, 6, 12),
        with_transporter=True,
    ) -> OutwardEntry:
        counter["n"] += 1
        n = counter["n"]
        entry = OutwardEntry(
            sr_no=n,
            date=entry_date,
            cement_company="UltraCem Works",
            manifest_number=manifest_number or f"OUT-{n:03d}",
            transporter_id=transporter.id if with_transporter else None,
            waste_name="AFR Blend",
            quantity=Decimal(quantity),
            unit=unit,
            rate=Decimal(rate) if rate is not None else None,
            amount=Decimal(amount) if amount is not None else None,
        )
        db.add(entry)
        await db.commit()
        return entry

    return _make
