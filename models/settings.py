# models/settings.py
"""
시스템 설정 테이블 ORM 모델

런타임에 변경 가능한 설정(LLM 제공자/모델)을 key-value 로 보관
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime
from config.db import Base


class SystemSettings(Base):
    __tablename__ = "system_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    setting_key = Column(String(100), unique=True, nullable=False)
    setting_value = Column(String(500), nullable=False)
    description = Column(String(255), nullable=True)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    def __repr__(self):
        return f"<SystemSettings(key={self.setting_key}, value={self.setting_value})>"
