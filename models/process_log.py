from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from config.db import Base


class ProcessLog(Base):
    __tablename__ = "process_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # NULL = 시스템 이벤트 (스캔, 감시, 복구 등)
    file_process_id = Column(
        Integer,
        ForeignKey("file_processes.id", ondelete="CASCADE"),
        nullable=True,
        index=True
    )

    action = Column(String(50), nullable=False)
    message = Column(Text, nullable=False)
    details = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.now)

    file_process = relationship("FileProcess", back_populates="logs")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "file_process_id": self.file_process_id,
            "action": self.action,
            "message": self.message,
            "details": self.details,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
