"""
주간 테마 모델 (week_number → 주제 이름)
"""

from sqlalchemy import Column, String, Text, Integer

from imagitales.core.database import Base


class WeeklyTheme(Base):
    __tablename__ = "weekly_themes"

    week_number = Column(Integer, primary_key=True, autoincrement=False)
    theme_name = Column(String(255), nullable=False)
    theme_description = Column(Text)

    def __repr__(self):
        return f"<WeeklyTheme(week_number={self.week_number}, theme_name={self.theme_name})>"
