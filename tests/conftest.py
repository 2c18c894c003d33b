"""Pytest fixtures for testing"""

import pytest
from datetime import date
from decimal import Decimal
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from billfold.api.main import create_app
from billfold.infrastructure.database.models import Base
from billfold.infrastructure.database.repositories import SqlAlchemyLedger
from billfold.infrastructure.database.session import get_db
from billfold.domain.models import Purchase, RecurringService


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TEST_USER = "user_1"


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def ledger(db: Session) -> SqlAlchemyLedger:
    """Ledger scoped to the test user"""
    return SqlAlchemyLedger(db, TEST_USER)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app, headers={"X-User-ID": TEST_USER})


@pytest.fixture
def sample_purchases() -> list[Purchase]:
    """Two purchases on card_1 and one on card_2"""
    return [
        Purchase(
            id="p_tv",
            card_id="card_1",
            description="TV",
            total_amount=Decimal("5000.00"),
            installments=12,
            first_installment_date=date(2024, 11, 15),
        ),
        Purchase(
            id="p_groceries",
            card_id="card_1",
            description="Groceries",
            total_amount=Decimal("500.00"),
            installments=1,
            first_installment_date=date(2025, 1, 3),
        ),
        Purchase(
            id="p_laptop",
            card_id="card_2",
            description="Laptop",
            total_amount=Decimal("1200.00"),
            installments=6,
            first_installment_date=date(2025, 1, 10),
        ),
    ]


@pytest.fixture
def sample_services() -> list[RecurringService]:
    """Rent, internet and an inactive gym membership"""
    return [
        RecurringService(id="svc_rent", name="Rent", estimated_amount=Decimal("1500.00"), day_of_month=5),
        RecurringService(id="svc_internet", name="Internet", estimated_amount=Decimal("45.50"), day_of_month=31),
        RecurringService(
            id="svc_gym", name="Gym", estimated_amount=Decimal("30.00"), day_of_month=1, is_active=False
        ),
    ]
