from datetime import datetime
from sqlalchemy import Column, Integer, Boolean, DateTime
from config.db import Base

STATE_ROW_ID = 1


class ProcessingState(Base):
    """
    처리 상태 싱글톤 (재시작 복구용)

    단일 인스턴스 운영을 전제로 하며 프로세스 간 잠금 용도가 아님
    """
    __tablename__ = "processing_state"

    id = Column(Integer, primary_key=True)

    last_processed_file_id = Column(Integer, nullable=True)
    last_scan_time = Column(DateTime, nullable=True)
    is_processing = Column(Boolean, nullable=False, default=False)

    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    def to_dict(self) -> dict:
        return {
            "last_processed_file_id": self.last_processed_file_id,
            "last_scan_time": self.last_scan_time.isoformat() if self.last_scan_time else None,
            "is_processing": bool(self.is_processing),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
