"""
Relationship store schema and connection management.

Uses SQLite with SQLAlchemy. The tables mirror the slice of the hosted
workforce database the resolver needs: employees with their manager links,
per-company role assignments, and contract ownership.
"""

from datetime import datetime
from pathlib import Path
from typing import Any, Dict

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import declarative_base, sessionmaker

from .models import parse_active

Base = declarative_base()


class Employee(Base):
    """Employee with optional line-manager references. Ids are unique per company."""

    __tablename__ = "employees"

    company_id = Column(String, primary_key=True)
    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=True, index=True)
    manager_user_id = Column(String, nullable=True)  # direct manager identity
    manager_employee_id = Column(String, nullable=True)  # needs one more hop
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)


class UserRole(Base):
    """Company-scoped role assignment (admin, hr_admin, hr_staff, ...)."""

    __tablename__ = "user_roles"
    __table_args__ = (UniqueConstraint("user_id", "company_id", "role", name="uq_user_company_role"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    company_id = Column(String, nullable=False, index=True)
    role = Column(String, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)


class Contract(Base):
    """Contract ownership facts. Ids are unique per company."""

    __tablename__ = "contracts"

    company_id = Column(String, primary_key=True)
    id = Column(String, primary_key=True)
    owner_user_id = Column(String, nullable=True)
    legal_reviewer_user_id = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)


def init_database(db_path: Path) -> None:
    """
    Initialize database and create tables.

    Args:
        db_path: Path to SQLite database file
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(engine)
    engine.dispose()


def get_session(db_path: Path):
    """
    Get database session.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLAlchemy session
    """
    engine = create_engine(f"sqlite:///{db_path}")
    Session = sessionmaker(bind=engine)
    return Session()


def _opt(value: Any):
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def import_snapshot(session, snapshot: Dict[str, Any]) -> Dict[str, int]:
    """
    Upsert the rows of a relationship snapshot.

    Employees and contracts are keyed by (company_id, id), so two companies
    may use the same ids. Re-importing the same snapshot leaves the database
    unchanged.

    Args:
        session: SQLAlchemy session
        snapshot: Parsed snapshot (see storage.load_snapshot)

    Returns:
        Number of rows written per table

    Raises:
        ValueError: If a user_roles row has a non-boolean is_active
    """
    counts = {"employees": 0, "user_roles": 0, "contracts": 0}

    for row in snapshot.get("employees", []):
        session.merge(Employee(
            id=str(row["id"]),
            company_id=str(row["company_id"]),
            user_id=_opt(row.get("user_id")),
            manager_user_id=_opt(row.get("manager_user_id")),
            manager_employee_id=_opt(row.get("manager_employee_id")),
        ))
        counts["employees"] += 1

    for row in snapshot.get("user_roles", []):
        is_active = parse_active(row.get("is_active"))
        existing = session.query(UserRole).filter_by(
            user_id=str(row["user_id"]),
            company_id=str(row["company_id"]),
            role=str(row["role"]),
        ).first()
        if existing is None:
            session.add(UserRole(
                user_id=str(row["user_id"]),
                company_id=str(row["company_id"]),
                role=str(row["role"]),
                is_active=is_active,
            ))
        else:
            existing.is_active = is_active
        counts["user_roles"] += 1

    for row in snapshot.get("contracts", []):
        session.merge(Contract(
            id=str(row["id"]),
            company_id=str(row["company_id"]),
            owner_user_id=_opt(row.get("owner_user_id")),
            legal_reviewer_user_id=_opt(row.get("legal_reviewer_user_id")),
        ))
        counts["contracts"] += 1

    session.commit()
    return counts
