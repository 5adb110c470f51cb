"""
삽화 모델 (업로드 흐름에서 생성, 파이프라인은 참조만 한다)
"""

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
import uuid

from imagitales.core.database import Base, UUID


class Illustration(Base):
    __tablename__ = "illustrations"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4, index=True)
    story_id = Column(UUID(), ForeignKey("stories.id", ondelete="CASCADE"), nullable=False, index=True)
    image_path = Column(String(500), nullable=False)  # 업로드 디렉터리 기준 상대 경로
    filename = Column(String(255))
    file_type = Column(String(50))
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    story = relationship("Story", back_populates="illustrations")
