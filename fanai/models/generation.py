"""
Generation Model
Database model for generation jobs.
"""

from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime

from fanai.core.database import Base


class Generation(Base):
    """Generation job model."""

    __tablename__ = "generations"

    id = Column(String, primary_key=True)  # gen_xxxx format
    user_id = Column(String, nullable=False, index=True)

    # Request
    celebrity_slug = Column(String, nullable=False)
    template_slug = Column(String, nullable=False)
    campaign_id = Column(String, nullable=True)
    source_image_url = Column(String, nullable=True)

    # Status: pending, processing, completed, failed
    status = Column(String, default="pending", index=True)
    error_message = Column(Text, nullable=True)

    # Result
    result_image_url = Column(String, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
