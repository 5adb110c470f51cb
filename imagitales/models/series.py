"""
스토리 시리즈 모델
"""

from sqlalchemy import Column, String, Text, DateTime, func
from sqlalchemy.orm import relationship, validates
import uuid

from imagitales.core.constants import name_key as normalize_name
from imagitales.core.database import Base, UUID


class StorySeries(Base):
    __tablename__ = "story_series"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4, index=True)
    name = Column(String(255), nullable=False, unique=True)
    name_key = Column(String(255), nullable=False, unique=True, index=True)
    description = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    stories = relationship("Story", back_populates="series", passive_deletes=True)

    @validates("name")
    def _sync_name_key(self, key, value):
        self.name_key = normalize_name(value)
        return value

    def __repr__(self):
        return f"<StorySeries(id={self.id}, name={self.name})>"
