"""Declarative base shared by all mentor-core models."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""


def new_id() -> str:
    """Primary key generator (portable string UUIDs)."""
    return str(uuid4())
