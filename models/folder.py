from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import relationship
from config.db import Base

FOLDER_LOCAL = "local"
FOLDER_REMOTE = "remote"
FOLDER_TYPES = (FOLDER_LOCAL, FOLDER_REMOTE)


class WatchFolder(Base):
    __tablename__ = "watch_folders"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # local: 감시 디렉터리 / remote: 공유폴더 내부 하위 경로 (없으면 공유 루트)
    path = Column(String(1024), nullable=False, default="")
    alias = Column(String(255), nullable=False)
    folder_type = Column(String(20), nullable=False, default=FOLDER_LOCAL)

    smb_host = Column(String(255), nullable=True)
    smb_share = Column(String(255), nullable=True)
    smb_username = Column(String(255), nullable=True)
    smb_password = Column(String(255), nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    dept_mappings = relationship(
        "FolderDeptMapping",
        back_populates="folder",
        cascade="all, delete-orphan",
    )

    @property
    def is_remote(self) -> bool:
        return self.folder_type == FOLDER_REMOTE

    def to_dict(self) -> dict:
        # 비밀번호는 응답에 포함하지 않음
        return {
            "id": self.id,
            "alias": self.alias,
            "path": self.path,
            "folder_type": self.folder_type,
            "smb_host": self.smb_host,
            "smb_share": self.smb_share,
            "smb_username": self.smb_username,
            "has_password": bool(self.smb_password),
            "is_active": bool(self.is_active),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<WatchFolder(id={self.id}, alias={self.alias}, type={self.folder_type})>"


class FolderDeptMapping(Base):
    __tablename__ = "folder_dept_mappings"
    __table_args__ = (
        UniqueConstraint("folder_id", "dept_code", name="uq_folder_dept"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    folder_id = Column(
        Integer,
        ForeignKey("watch_folders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    dept_code = Column(String(50), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.now)

    folder = relationship("WatchFolder", back_populates="dept_mappings")
