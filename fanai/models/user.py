"""
User Model
Database model for accounts and their credit balance.
"""

from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime

from fanai.core.database import Base


class User(Base):
    """Account holder. One credit pays for one generation."""

    __tablename__ = "users"

    id = Column(String, primary_key=True)
    email = Column(String, nullable=True, unique=True)
    credits = Column(Integer, nullable=False, default=0)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
