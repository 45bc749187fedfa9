# pipeline/store.py
"""
영구 저장소 (감시 폴더 / 파일 처리 기록 / 처리 로그 / 처리 상태)

- 모든 쓰기는 호출 단위로 즉시 commit (대시보드 폴링에 실시간 반영)
- 필터 조회는 FileFilter 로 받아 ORM 조건으로 변환 (SQL 문자열 조립 없음)
- (폴더, 파일명) 당 live(pending/processing) 레코드는 하나만 존재하도록
  등록 경로를 잠금으로 직렬화
"""

import os
import logging
import threading
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from config.db import SessionLocal
from models.folder import WatchFolder, FolderDeptMapping, FOLDER_TYPES, FOLDER_REMOTE
from models.file_process import (
    FileProcess,
    PENDING,
    PROCESSING,
    LIVE_STATUSES,
    STATUSES,
)
from models.process_log import ProcessLog
from models.processing_state import ProcessingState, STATE_ROW_ID
from pipeline.exceptions import ConfigurationError, NotFoundError

logger = logging.getLogger("store")

FOLDER_FIELDS = (
    "path", "alias", "folder_type",
    "smb_host", "smb_share", "smb_username", "smb_password",
    "is_active",
)


@dataclass
class FileFilter:
    status: Optional[str] = None
    folder_ids: Optional[List[int]] = None
    search: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    page: int = 1
    limit: int = 20


def validate_folder(folder_type: str, path: str, smb_host: Optional[str],
                    smb_share: Optional[str], is_active: bool):
    if folder_type not in FOLDER_TYPES:
        raise ConfigurationError(f"지원하지 않는 폴더 유형: {folder_type}")

    if folder_type == FOLDER_REMOTE:
        if is_active and (not smb_host or not smb_share):
            raise ConfigurationError("원격 폴더는 호스트와 공유폴더 이름이 필요합니다.")
    elif not path:
        raise ConfigurationError("로컬 폴더 경로가 비어있습니다.")


class FileStore:
    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self._session_factory = session_factory
        self._register_lock = threading.Lock()

    # --------------------------
    # 처리 로그
    # --------------------------

    def add_log(self, file_process_id: Optional[int], action: str, message: str,
                details: Optional[str] = None) -> ProcessLog:
        db = self._session_factory()
        try:
            entry = ProcessLog(
                file_process_id=file_process_id,
                action=action,
                message=message,
                details=details,
            )
            db.add(entry)
            db.commit()
            return entry
        finally:
            db.close()

    def list_logs(self, file_process_id: Optional[int] = None,
                  system_only: bool = False, limit: int = 100) -> List[ProcessLog]:
        db = self._session_factory()
        try:
            query = db.query(ProcessLog)
            if file_process_id is not None:
                query = query.filter(ProcessLog.file_process_id == file_process_id)
            elif system_only:
                query = query.filter(ProcessLog.file_process_id.is_(None))
            return query.order_by(ProcessLog.id.desc()).limit(limit).all()
        finally:
            db.close()

    # --------------------------
    # 감시 폴더
    # --------------------------

    def get_folder(self, folder_id: int) -> Optional[WatchFolder]:
        db = self._session_factory()
        try:
            return db.query(WatchFolder).filter(WatchFolder.id == folder_id).first()
        finally:
            db.close()

    def require_folder(self, folder_id: int) -> WatchFolder:
        folder = self.get_folder(folder_id)
        if not folder:
            raise NotFoundError(f"폴더를 찾을 수 없습니다: {folder_id}")
        return folder

    def list_folders(self, active_only: bool = False) -> List[WatchFolder]:
        db = self._session_factory()
        try:
            query = db.query(WatchFolder)
            if active_only:
                query = query.filter(WatchFolder.is_active.is_(True))
            return query.order_by(WatchFolder.id).all()
        finally:
            db.close()

    def find_folder_by_path(self, path: str) -> Optional[WatchFolder]:
        db = self._session_factory()
        try:
            return db.query(WatchFolder).filter(WatchFolder.path == path).first()
        finally:
            db.close()

    def create_folder(self, alias: str, path: str = "", folder_type: str = "local",
                      smb_host: Optional[str] = None, smb_share: Optional[str] = None,
                      smb_username: Optional[str] = None, smb_password: Optional[str] = None,
                      is_active: bool = True,
                      dept_codes: Optional[Iterable[str]] = None) -> WatchFolder:
        if not alias:
            raise ConfigurationError("폴더 별칭이 비어있습니다.")
        validate_folder(folder_type, path, smb_host, smb_share, is_active)

        db = self._session_factory()
        try:
            folder = WatchFolder(
                path=path or "",
                alias=alias,
                folder_type=folder_type,
                smb_host=smb_host or None,
                smb_share=smb_share or None,
                smb_username=smb_username or None,
                smb_password=smb_password or None,
                is_active=is_active,
            )
            db.add(folder)
            db.flush()

            for code in sorted(set(dept_codes or [])):
                db.add(FolderDeptMapping(folder_id=folder.id, dept_code=code))

            db.commit()
            return folder
        finally:
            db.close()

    def update_folder(self, folder_id: int, **fields) -> WatchFolder:
        unknown = set(fields) - set(FOLDER_FIELDS)
        if unknown:
            raise ConfigurationError(f"변경할 수 없는 항목: {', '.join(sorted(unknown))}")

        db = self._session_factory()
        try:
            folder = db.query(WatchFolder).filter(WatchFolder.id == folder_id).first()
            if not folder:
                raise NotFoundError(f"폴더를 찾을 수 없습니다: {folder_id}")

            for key, value in fields.items():
                setattr(folder, key, value)

            validate_folder(
                folder.folder_type, folder.path, folder.smb_host,
                folder.smb_share, folder.is_active,
            )

            db.commit()
            return folder
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def delete_folder(self, folder_id: int) -> bool:
        """폴더 삭제 (부서 매핑, 파일 처리 기록, 로그 CASCADE)"""
        db = self._session_factory()
        try:
            folder = db.query(WatchFolder).filter(WatchFolder.id == folder_id).first()
            if not folder:
                return False

            for record in db.query(FileProcess).filter(FileProcess.folder_id == folder_id).all():
                db.delete(record)

            db.delete(folder)
            db.commit()
            return True
        finally:
            db.close()

    def set_dept_codes(self, folder_id: int, dept_codes: Iterable[str]):
        db = self._session_factory()
        try:
            db.query(FolderDeptMapping).filter(
                FolderDeptMapping.folder_id == folder_id
            ).delete(synchronize_session=False)

            for code in sorted(set(dept_codes)):
                db.add(FolderDeptMapping(folder_id=folder_id, dept_code=code))

            db.commit()
        finally:
            db.close()

    def get_dept_codes(self, folder_id: int) -> List[str]:
        db = self._session_factory()
        try:
            rows = db.query(FolderDeptMapping.dept_code).filter(
                FolderDeptMapping.folder_id == folder_id
            ).order_by(FolderDeptMapping.dept_code).all()
            return [r.dept_code for r in rows]
        finally:
            db.close()

    # --------------------------
    # 파일 처리 기록
    # --------------------------

    def get_file(self, file_id: int) -> Optional[FileProcess]:
        db = self._session_factory()
        try:
            return db.query(FileProcess).filter(FileProcess.id == file_id).first()
        finally:
            db.close()

    def require_file(self, file_id: int) -> FileProcess:
        record = self.get_file(file_id)
        if not record:
            raise NotFoundError(f"파일 처리 기록을 찾을 수 없습니다: {file_id}")
        return record

    def find_file_by_name(self, folder_id: int, filename: str) -> Optional[FileProcess]:
        """원본 파일명 또는 변경된 파일명이 일치하는 기록"""
        db = self._session_factory()
        try:
            return db.query(FileProcess).filter(
                FileProcess.folder_id == folder_id,
                or_(
                    FileProcess.original_filename == filename,
                    FileProcess.new_filename == filename,
                ),
            ).order_by(FileProcess.id.desc()).first()
        finally:
            db.close()

    def find_live_file(self, folder_id: int, filename: str) -> Optional[FileProcess]:
        db = self._session_factory()
        try:
            return self._query_live(db, folder_id, filename).first()
        finally:
            db.close()

    def _query_live(self, db: Session, folder_id: int, filename: str):
        return db.query(FileProcess).filter(
            FileProcess.folder_id == folder_id,
            FileProcess.original_filename == filename,
            FileProcess.status.in_(LIVE_STATUSES),
        ).order_by(FileProcess.id)

    def create_file(self, folder_id: int, original_path: str, status: str,
                    original_filename: Optional[str] = None, **fields) -> FileProcess:
        if status not in STATUSES:
            raise ValueError(f"알 수 없는 상태: {status}")

        db = self._session_factory()
        try:
            record = FileProcess(
                folder_id=folder_id,
                original_path=original_path,
                original_filename=original_filename or os.path.basename(original_path),
                status=status,
                **fields,
            )
            db.add(record)
            db.commit()
            return record
        finally:
            db.close()

    def register_pending(self, folder_id: int, file_path: str) -> Tuple[FileProcess, bool]:
        """
        pending 등록 (이미 live 레코드가 있으면 그대로 반환)

        Returns:
            (레코드, 새로 생성 여부)
        """
        filename = os.path.basename(file_path)

        with self._register_lock:
            db = self._session_factory()
            try:
                existing = self._query_live(db, folder_id, filename).first()
                if existing:
                    return existing, False

                record = FileProcess(
                    folder_id=folder_id,
                    original_path=file_path,
                    original_filename=filename,
                    status=PENDING,
                )
                db.add(record)
                db.commit()
                return record, True
            finally:
                db.close()

    def claim_for_processing(self, folder_id: int, file_path: str) -> FileProcess:
        """
        파이프라인 Register 단계

        pending 레코드가 있으면 processing 으로 전환, 없으면 새로 생성
        """
        filename = os.path.basename(file_path)

        with self._register_lock:
            db = self._session_factory()
            try:
                record = self._query_live(db, folder_id, filename).first()
                if record:
                    record.status = PROCESSING
                    record.original_path = file_path
                    record.error_message = None
                else:
                    record = FileProcess(
                        folder_id=folder_id,
                        original_path=file_path,
                        original_filename=filename,
                        status=PROCESSING,
                    )
                    db.add(record)
                db.commit()
                return record
            finally:
                db.close()

    def update_file(self, file_id: int, **fields) -> Optional[FileProcess]:
        db = self._session_factory()
        try:
            record = db.query(FileProcess).filter(FileProcess.id == file_id).first()
            if not record:
                return None

            for key, value in fields.items():
                setattr(record, key, value)

            db.commit()
            return record
        finally:
            db.close()

    def delete_file(self, file_id: int) -> bool:
        """레코드 삭제 (처리 로그 CASCADE)"""
        db = self._session_factory()
        try:
            record = db.query(FileProcess).filter(FileProcess.id == file_id).first()
            if not record:
                return False
            db.delete(record)
            db.commit()
            return True
        finally:
            db.close()

    def list_files(self, criteria: FileFilter) -> Tuple[List[FileProcess], int]:
        db = self._session_factory()
        try:
            query = db.query(FileProcess)

            if criteria.status:
                query = query.filter(FileProcess.status == criteria.status)

            if criteria.folder_ids is not None:
                query = query.filter(FileProcess.folder_id.in_(criteria.folder_ids))

            if criteria.search:
                term = f"%{criteria.search}%"
                query = query.filter(or_(
                    FileProcess.original_filename.like(term),
                    FileProcess.new_filename.like(term),
                    FileProcess.company_name.like(term),
                    FileProcess.content_summary.like(term),
                ))

            if criteria.date_from:
                query = query.filter(FileProcess.created_at >= _start_of(criteria.date_from))

            if criteria.date_to:
                query = query.filter(
                    FileProcess.created_at < _start_of(criteria.date_to) + timedelta(days=1)
                )

            total = query.count()

            page = max(criteria.page, 1)
            limit = max(criteria.limit, 1)

            items = (
                query.order_by(FileProcess.updated_at.desc(), FileProcess.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
                .all()
            )
            return items, total
        finally:
            db.close()

    def list_files_by_status(self, status: str) -> List[FileProcess]:
        db = self._session_factory()
        try:
            return db.query(FileProcess).filter(
                FileProcess.status == status
            ).order_by(FileProcess.created_at.asc(), FileProcess.id.asc()).all()
        finally:
            db.close()

    def reset_processing_to_pending(self, exclude_paths: Iterable[str] = ()) -> int:
        db = self._session_factory()
        try:
            query = db.query(FileProcess).filter(FileProcess.status == PROCESSING)
            exclude_paths = list(exclude_paths)
            if exclude_paths:
                query = query.filter(FileProcess.original_path.notin_(exclude_paths))
            count = query.update(
                {FileProcess.status: PENDING, FileProcess.updated_at: datetime.now()},
                synchronize_session=False,
            )
            db.commit()
            return count
        finally:
            db.close()

    def count_by_status(self) -> Dict[str, int]:
        db = self._session_factory()
        try:
            rows = db.query(
                FileProcess.status, func.count(FileProcess.id)
            ).group_by(FileProcess.status).all()
            counts = {status: 0 for status in STATUSES}
            counts.update({status: count for status, count in rows})
            return counts
        finally:
            db.close()

    def count_processed_since(self, since: datetime) -> int:
        db = self._session_factory()
        try:
            return db.query(func.count(FileProcess.id)).filter(
                FileProcess.processed_at >= since
            ).scalar() or 0
        finally:
            db.close()

    # --------------------------
    # 처리 상태 (싱글톤)
    # --------------------------

    def get_processing_state(self) -> ProcessingState:
        db = self._session_factory()
        try:
            state = self._state_row(db)
            db.commit()
            return state
        finally:
            db.close()

    def update_processing_state(self, is_processing: Optional[bool] = None,
                                last_processed_file_id: Optional[int] = None,
                                scanned: bool = False) -> ProcessingState:
        db = self._session_factory()
        try:
            state = self._state_row(db)
            if is_processing is not None:
                state.is_processing = is_processing
            if last_processed_file_id is not None:
                state.last_processed_file_id = last_processed_file_id
            if scanned:
                state.last_scan_time = datetime.now()
            state.updated_at = datetime.now()
            db.commit()
            return state
        finally:
            db.close()

    def _state_row(self, db: Session) -> ProcessingState:
        state = db.query(ProcessingState).filter(ProcessingState.id == STATE_ROW_ID).first()
        if not state:
            state = ProcessingState(id=STATE_ROW_ID, last_processed_file_id=0, is_processing=False)
            db.add(state)
            db.flush()
        return state


def _start_of(day: date) -> datetime:
    if isinstance(day, datetime):
        return day.replace(hour=0, minute=0, second=0, microsecond=0)
    return datetime(day.year, day.month, day.day)
