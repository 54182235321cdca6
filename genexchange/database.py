"""
Database schema and connection management.

Uses SQLite with SQLAlchemy. Table layout follows the hosted backend:
profiles, categories, profile_assets (offerings), profile_needs (wants).
"""

import uuid
from datetime import datetime
from pathlib import Path
from sqlalchemy import create_engine, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import declarative_base, relationship, sessionmaker

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


class ProfileRow(Base):
    """Participant profile."""

    __tablename__ = "profiles"

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(String, nullable=False, unique=True)  # one profile per identity
    user_type = Column(String, nullable=False)  # youth | senior
    full_name = Column(String, nullable=False)
    age = Column(Integer, nullable=False)
    bio = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    assets = relationship("AssetRow", cascade="all, delete-orphan", order_by="AssetRow.created_at")
    needs = relationship("NeedRow", cascade="all, delete-orphan", order_by="NeedRow.created_at")


class CategoryRow(Base):
    """Fixed lookup of category names."""

    __tablename__ = "categories"

    id = Column(String, primary_key=True, default=_new_id)
    name = Column(String, nullable=False, unique=True)


class AssetRow(Base):
    """Something a profile can share."""

    __tablename__ = "profile_assets"

    id = Column(String, primary_key=True, default=_new_id)
    profile_id = Column(String, ForeignKey("profiles.id"), nullable=False, index=True)
    category_id = Column(String, nullable=True)  # NULL or placeholder for free text
    description = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, nullable=False, default=datetime.now)


class NeedRow(Base):
    """Something a profile wants to learn."""

    __tablename__ = "profile_needs"

    id = Column(String, primary_key=True, default=_new_id)
    profile_id = Column(String, ForeignKey("profiles.id"), nullable=False, index=True)
    category_id = Column(String, nullable=True)
    description = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, nullable=False, default=datetime.now)


def init_database(db_path: Path) -> None:
    """
    Initialize database and create tables.

    Args:
        db_path: Path to SQLite database file
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(engine)


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
