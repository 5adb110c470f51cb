"""
스토리 모델
"""

from sqlalchemy import Column, String, Text, Integer, DateTime, ForeignKey, CheckConstraint, func
from sqlalchemy.orm import relationship
import uuid

from imagitales.core.database import Base, UUID


class Story(Base):
    """스토리 모델"""
    __tablename__ = "stories"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4, index=True)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    age_group = Column(String(10), nullable=False, index=True)
    locale = Column(String(10), nullable=False, default="fr", index=True)
    week_number = Column(Integer, nullable=False, default=1, index=True)
    day_order = Column(Integer, nullable=False)
    series_id = Column(UUID(), ForeignKey("story_series.id", ondelete="SET NULL"), nullable=True, index=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    modified_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("day_order BETWEEN 1 AND 7", name="day_order_range"),
        CheckConstraint("week_number >= 1", name="week_number_positive"),
    )

    # 관계 설정
    series = relationship("StorySeries", back_populates="stories")
    theme_links = relationship(
        "StoryTheme",
        back_populates="story",
        cascade="all, delete-orphan",
        order_by="StoryTheme.created_at",
    )
    illustrations = relationship(
        "Illustration",
        back_populates="story",
        cascade="all, delete-orphan",
        order_by="Illustration.position",
    )
    versions = relationship(
        "StoryVersion",
        back_populates="story",
        cascade="all, delete-orphan",
        order_by="StoryVersion.version",
    )

    def __repr__(self):
        return f"<Story(id={self.id}, title={self.title}, version={self.version})>"
