import os

# Debe ir antes de importar la app: config lee el entorno al importarse
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["LOG_LEVEL"] = "WARNING"

import datetime as dt

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from app.core.logging import configure_logging
from app.core.security import create_access_token
from app.database import get_session
from app.main import app
from app.models.category import Category, CategoryType
from app.models.enums import ProgressStatus, TransactionSource, TransactionType
from app.models.installment import Installment
from app.models.plan import Plan
from app.models.transaction import Transaction
from app.models.user import User

NOW = dt.datetime(2024, 3, 15, 12, 0)
CRON_SECRET = "test-cron-secret"


@pytest.fixture(scope="session", autouse=True)
def _quiet_logging():
    configure_logging(level="WARNING", json_logs=False)


@pytest.fixture
def now() -> dt.datetime:
    return NOW


@pytest.fixture(name="session")
def session_fixture():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(name="client")
def client_fixture(session: Session):
    def get_session_override():
        yield session

    app.dependency_overrides[get_session] = get_session_override
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session: Session):
    def factory(email: str = "ana@example.com") -> User:
        user = User(email=email, name=email.split("@")[0], hashed_password="not-used")
        session.add(user)
        session.commit()
        session.refresh(user)
        return user
    return factory


@pytest.fixture
def user(make_user) -> User:
    return make_user()


@pytest.fixture
def make_category(session: Session):
    def factory(user: User, kind: CategoryType = CategoryType.expense, name: str = "Hogar") -> Category:
        category = Category(name=name, type=kind, user_id=user.id)
        session.add(category)
        session.commit()
        session.refresh(category)
        return category
    return factory


@pytest.fixture
def expense_category(make_category, user) -> Category:
    return make_category(user)


@pytest.fixture
def income_category(make_category, user) -> Category:
    return make_category(user, CategoryType.income, name="Sueldo")


@pytest.fixture
def auth_headers(user) -> dict:
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def cron_headers() -> dict:
    return {"Authorization": f"Bearer {CRON_SECRET}"}


@pytest.fixture
def make_plan(session: Session):
    def factory(user: User, target: float = 1000.0, **fields) -> Plan:
        values = dict(
            name="Vacaciones",
            target_amount=target,
            start_date=dt.datetime(2024, 1, 1, 12),
            end_date=dt.datetime(2024, 12, 31, 12),
            status=ProgressStatus.active,
        )
        values.update(fields)
        plan = Plan(user_id=user.id, **values)
        session.add(plan)
        session.commit()
        session.refresh(plan)
        return plan
    return factory


@pytest.fixture
def add_entry(session: Session):
    """Inserta un movimiento directo en el libro, sin pasar por los servicios."""
    def factory(user: User, amount: float, **fields) -> Transaction:
        values = dict(
            description="Movimiento",
            type=TransactionType.expense,
            date=NOW,
            source_type=TransactionSource.manual,
        )
        values.update(fields)
        entry = Transaction(user_id=user.id, amount=amount, **values)
        session.add(entry)
        session.commit()
        session.refresh(entry)
        return entry
    return factory


@pytest.fixture
def make_installment(session: Session):
    def factory(user: User, category: Category, total: float = 1200.0, count: int = 3, **fields) -> Installment:
        values = dict(
            description="Notebook",
            current_installment=0,
            start_date=dt.datetime(2024, 1, 31, 12),
            status=ProgressStatus.active,
        )
        values.update(fields)
        installment = Installment(
            user_id=user.id,
            category_id=category.id,
            total_amount=total,
            installment_count=count,
            **values,
        )
        session.add(installment)
        session.commit()
        session.refresh(installment)
        return installment
    return factory
