"""
Pytest configuration and fixtures
"""
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from leaveflow.main import app
from leaveflow.db.base import Base
from leaveflow.core.deps import get_db

# Import all models to ensure they're registered with Base.metadata
from leaveflow.models import (  # noqa: F401
    Employee,
    ApprovalChainConfig,
    AuditLog,
    LeaveRequest,
    LeaveBalance,
    LeaveTransaction,
    PolicySetting,
    EntitlementBand,
    LeaveTypeConfig,
    Role,
)
from leaveflow.services.policy_service import get_or_create_policy_settings, seed_default_leave_types


# Use in-memory SQLite for testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# Enable foreign keys for SQLite
@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

POLICY_YEAR = 2026


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db):
    """Test client fixture with database override"""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _headers(employee: Employee) -> dict:
    return {"X-Employee-Id": str(employee.id)}


@pytest.fixture
def auth_headers():
    """Headers the identity gateway forwards for an employee"""
    return _headers


def make_employee(db: Session, emp_code: str, name: str, role: Role = Role.STAFF, grade: int = 5, active: bool = True) -> Employee:
    employee = Employee(emp_code=emp_code, name=name, role=role.value, grade=grade, active=active)
    db.add(employee)
    db.commit()
    db.refresh(employee)
    return employee


@pytest.fixture
def leave_policy(db: Session):
    """Default leave types and the 2026 policy year (carry-forward until Mar 31, 7-day SLA)"""
    seed_default_leave_types(db)
    return get_or_create_policy_settings(db, POLICY_YEAR)


@pytest.fixture
def general_manager(db: Session):
    return make_employee(db, "GM001", "General Manager", Role.GENERAL_MANAGER, grade=20)


@pytest.fixture
def line_manager(db: Session, general_manager):
    manager = make_employee(db, "LM001", "Line Manager", Role.LINE_MANAGER, grade=12)
    db.add(ApprovalChainConfig(employee_id=manager.id, general_manager_id=general_manager.id))
    db.commit()
    return manager


@pytest.fixture
def backup_approver(db: Session):
    return make_employee(db, "BK001", "Backup Approver", Role.LINE_MANAGER, grade=14)


@pytest.fixture
def admin_employee(db: Session):
    return make_employee(db, "ADM001", "Administrator", Role.ADMIN, grade=18)


@pytest.fixture
def staff_employee(db: Session, line_manager, general_manager, backup_approver):
    """Staff member reporting to line_manager, escalating to general_manager"""
    staff = make_employee(db, "EMP001", "Staff Member", Role.STAFF, grade=10)
    db.add(ApprovalChainConfig(
        employee_id=staff.id,
        line_manager_id=line_manager.id,
        general_manager_id=general_manager.id,
        backup_approver_id=backup_approver.id,
    ))
    db.commit()
    return staff


@pytest.fixture
def staff_balance(db: Session, staff_employee, leave_policy):
    """2026 account: 22 days entitlement, 3 days carried forward, nothing used"""
    balance = LeaveBalance(
        employee_id=staff_employee.id,
        policy_year=POLICY_YEAR,
        entitlement_days=Decimal("22"),
        used_days=Decimal("0"),
        carried_forward_days=Decimal("3"),
        carried_forward_used_days=Decimal("0"),
    )
    db.add(balance)
    db.commit()
    db.refresh(balance)
    return balance

