from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Text, DateTime, ForeignKey
)
from sqlalchemy.orm import relationship
from config.db import Base

# status values
PENDING = "pending"
PROCESSING = "processing"
COMPLETED = "completed"
FAILED = "failed"
SKIPPED = "skipped"
EXISTING = "existing"

STATUSES = (PENDING, PROCESSING, COMPLETED, FAILED, SKIPPED, EXISTING)

# 한 (폴더, 파일명) 에 대해 동시에 하나만 존재해야 하는 상태
LIVE_STATUSES = (PENDING, PROCESSING)


class FileProcess(Base):
    __tablename__ = "file_processes"
    # 재처리 시 삭제된 ID 가 재사용되지 않도록 (SQLite)
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)

    folder_id = Column(
        Integer,
        ForeignKey("watch_folders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    original_path = Column(String(1024), nullable=False)
    original_filename = Column(String(255), nullable=False)
    new_filename = Column(String(255), nullable=True)

    company_name = Column(String(255), nullable=True)
    content_summary = Column(String(255), nullable=True)
    confidence = Column(Integer, nullable=True)
    ocr_text = Column(Text, nullable=True)

    status = Column(String(20), nullable=False, default=PENDING, index=True)
    error_message = Column(Text, nullable=True)

    processed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.now, index=True)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    logs = relationship(
        "ProcessLog",
        back_populates="file_process",
        cascade="all, delete-orphan",
        order_by="ProcessLog.id",
    )

    @property
    def current_filename(self) -> str:
        return self.new_filename or self.original_filename

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "folder_id": self.folder_id,
            "original_path": self.original_path,
            "original_filename": self.original_filename,
            "new_filename": self.new_filename,
            "company_name": self.company_name,
            "content_summary": self.content_summary,
            "confidence": self.confidence,
            "status": self.status,
            "error_message": self.error_message,
            "processed_at": self.processed_at.isoformat() if self.processed_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<FileProcess(id={self.id}, file={self.original_filename}, status={self.status})>"
