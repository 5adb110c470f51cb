"""
스토리 버전 스냅샷 모델 (append-only)
"""

from sqlalchemy import Column, String, Text, Integer, Boolean, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
import uuid

from imagitales.core.database import Base, UUID


class StoryVersion(Base):
    """수정 직전 스토리 상태의 불변 스냅샷"""
    __tablename__ = "story_versions"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4, index=True)
    story_id = Column(UUID(), ForeignKey("stories.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    age_group = Column(String(10), nullable=False)
    version = Column(Integer, nullable=False)
    # 스냅샷 대상 스토리의 마지막 수정 시각
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    story = relationship("Story", back_populates="versions")
    theme_links = relationship(
        "StoryVersionTheme",
        back_populates="story_version",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<StoryVersion(story_id={self.story_id}, version={self.version})>"


class StoryVersionTheme(Base):
    __tablename__ = "story_version_themes"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    story_version_id = Column(UUID(), ForeignKey("story_versions.id", ondelete="CASCADE"), nullable=False, index=True)
    theme_id = Column(UUID(), ForeignKey("themes.id"), nullable=False)
    is_primary = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    story_version = relationship("StoryVersion", back_populates="theme_links")
