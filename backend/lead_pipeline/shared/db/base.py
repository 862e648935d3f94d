"""
Base class for all SQLAlchemy ORM models.
"""
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for all ORM models.

    The `leads` table is owned by the dashboard's database project; models here
    only map the columns this service reads and writes.
    """
    pass
