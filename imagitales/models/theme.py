"""
테마 모델 및 스토리-테마 연결 테이블
"""

from sqlalchemy import Column, String, Text, Boolean, DateTime, ForeignKey, func, UniqueConstraint
from sqlalchemy.orm import relationship, validates
import uuid

from imagitales.core.constants import name_key as normalize_name
from imagitales.core.database import Base, UUID


class Theme(Base):
    __tablename__ = "themes"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4, index=True)
    # 이름이 자연키. 중복 판정은 name_key(strip + casefold)로 한다
    name = Column(String(100), nullable=False, unique=True, index=True)
    # 병합 전의 대소문자 중복 행이 남아 있을 수 있어 unique가 아니다
    name_key = Column(String(100), nullable=False, index=True)
    description = Column(Text)
    color = Column(String(9))
    icon = Column(String(16))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    story_links = relationship("StoryTheme", back_populates="theme")

    @validates("name")
    def _sync_name_key(self, key, value):
        self.name_key = normalize_name(value)
        return value

    def __repr__(self):
        return f"<Theme(id={self.id}, name={self.name})>"


class StoryTheme(Base):
    __tablename__ = "story_themes"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    story_id = Column(UUID(), ForeignKey("stories.id", ondelete="CASCADE"), nullable=False, index=True)
    theme_id = Column(UUID(), ForeignKey("themes.id"), nullable=False, index=True)
    is_primary = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint('story_id', 'theme_id', name='uq_story_theme'),
    )

    story = relationship("Story", back_populates="theme_links")
    theme = relationship("Theme", back_populates="story_links", lazy="joined")
