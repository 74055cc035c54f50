"""Pytest configuration: in-memory database, API client and a seeded building."""

import os
from datetime import date
from decimal import Decimal

# Set test database URL BEFORE any imports from condo
# This ensures the SessionLocal and engine use the test database
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from condo.api.app import app  # noqa: E402
from condo.api.dependencies import get_settings, get_today  # noqa: E402
from condo.models import (  # noqa: E402
    Base,
    Creditor,
    ExtraCharge,
    FeeHistory,
    Owner,
    Transaction,
    TransactionMonth,
    Unit,
)
from condo.services import SessionLocal, engine  # noqa: E402
from condo.services.config import Settings  # noqa: E402

TODAY = date(2026, 6, 15)
FIRST_DIGITAL_YEAR = 2024


@pytest.fixture
def db():
    """Fresh schema per test; yields a session bound to the in-memory engine."""
    Base.metadata.create_all(engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url="sqlite:///:memory:",
        log_file=str(tmp_path / "condo.log"),
        first_digital_year=FIRST_DIGITAL_YEAR,
    )


@pytest.fixture
def client(db, settings):
    """Create FastAPI test client with a fixed reference date."""
    app.dependency_overrides[get_today] = lambda: TODAY
    app.dependency_overrides[get_settings] = lambda: settings
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def add_payment(db, unit, when, amount, allocations, description="Transfer"):
    """Insert a payment with (month, amount[, extra_charge_id]) allocations."""
    tx = Transaction(
        transaction_date=when,
        description=description,
        amount=Decimal(str(amount)),
        type="payment",
        unit_id=unit.id,
    )
    db.add(tx)
    db.flush()
    for row in allocations:
        month, value, *rest = row
        db.add(
            TransactionMonth(
                transaction_id=tx.id,
                month=month,
                amount=Decimal(str(value)),
                extra_charge_id=rest[0] if rest else None,
            )
        )
    db.flush()
    return tx


@pytest.fixture
def building(db):
    """Two units, one global extra charge and one fixed creditor.

    Unit 1A: 37.50/month in 2024, 45.00 from 2025; every month of 2024 and
    2025 paid in full including the extra charge; the previous owner left
    100.00 of legacy debt.
    Unit 2B: no fee history (default 50.00); 2024 paid in full, 2025 unpaid;
    1000.00 legacy debt of which 400.00 was paid.
    Creditor Cleaning: 120.00/month, January 2024 paid.
    """
    unit_1a = Unit(code="1A", description="First floor left", monthly_fee=Decimal("45.00"))
    unit_2b = Unit(code="2B", description="Second floor right", monthly_fee=Decimal("50.00"))
    cleaning = Creditor(name="Cleaning", category="services", amount_due=Decimal("120.00"), is_fixed=True)
    db.add_all([unit_1a, unit_2b, cleaning])
    db.flush()

    db.add_all(
        [
            FeeHistory(unit_id=unit_1a.id, amount=Decimal("37.50"), effective_from="2024-01", effective_to="2024-12"),
            FeeHistory(unit_id=unit_1a.id, amount=Decimal("45.00"), effective_from="2025-01"),
            FeeHistory(creditor_id=cleaning.id, amount=Decimal("120.00"), effective_from="2024-01"),
            Owner(unit_id=unit_1a.id, name="Ana", end_month="2024-12", previous_debt=Decimal("100.00")),
            Owner(unit_id=unit_1a.id, name="Bruno", start_month="2025-01", previous_debt=Decimal("0")),
            Owner(unit_id=unit_2b.id, name="Carla", previous_debt=Decimal("1000.00")),
        ]
    )
    roof = ExtraCharge(
        description="Roof repair",
        amount=Decimal("10.00"),
        effective_from="2025-01",
        effective_to="2025-06",
    )
    db.add(roof)
    db.flush()

    add_payment(db, unit_1a, date(2024, 12, 20), "450.00", [(f"2024-{m:02d}", "37.50") for m in range(1, 13)])
    add_payment(
        db,
        unit_1a,
        date(2025, 12, 20),
        "600.00",
        [(f"2025-{m:02d}", "45.00") for m in range(1, 13)]
        + [(f"2025-{m:02d}", "10.00", roof.id) for m in range(1, 7)],
    )
    add_payment(db, unit_2b, date(2024, 3, 1), "400.00", [("PREV-DEBT", "400.00")], "Old debt")
    add_payment(db, unit_2b, date(2024, 12, 1), "600.00", [(f"2024-{m:02d}", "50.00") for m in range(1, 13)])

    expense = Transaction(
        transaction_date=date(2024, 1, 31),
        description="Cleaning January",
        amount=Decimal("-120.00"),
        type="expense",
        creditor_id=cleaning.id,
    )
    db.add(expense)
    db.flush()
    db.add(TransactionMonth(transaction_id=expense.id, month="2024-01", amount=Decimal("-120.00")))
    db.commit()

    return {"unit_1a": unit_1a.id, "unit_2b": unit_2b.id, "cleaning": cleaning.id, "roof": roof.id}
