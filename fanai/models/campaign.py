"""
Campaign Model
Marketing campaigns that generations can be attributed to.
"""

from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime

from fanai.core.database import Base


class Campaign(Base):
    __tablename__ = "campaigns"

    id = Column(String, primary_key=True)
    slug = Column(String, nullable=True, unique=True)
    name = Column(String, nullable=True)
    total_generations = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
