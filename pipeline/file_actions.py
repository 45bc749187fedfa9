# pipeline/file_actions.py
"""
대시보드에서 호출하는 파일 단위 작업 (재처리 / 수동 이름 변경)
"""

import os
import shutil
import logging
from typing import Optional

from config.paths import BACKUP_DIR
from models.file_process import FileProcess, EXISTING, LIVE_STATUSES
from pipeline.exceptions import ConfigurationError, ConflictError, FileMissingError
from pipeline.processing_queue import ProcessingQueue
from pipeline.store import FileStore
from services.folder_resolver import FolderResolver
from services.text_normalizer import ensure_document_ext
from services.utils.file_ops import find_latest_backup

logger = logging.getLogger("pipeline")


class FileActions:
    def __init__(self, store: FileStore, resolver: FolderResolver,
                 queue: ProcessingQueue, backup_dir: str = BACKUP_DIR):
        self.store = store
        self.resolver = resolver
        self.queue = queue
        self.backup_dir = backup_dir

    def _folder_path(self, folder_id: int) -> str:
        folder = self.store.require_folder(folder_id)
        resolved = self.resolver.resolve(folder)
        if not resolved.ok:
            raise ConfigurationError(resolved.error)
        return resolved.path

    def _current_file(self, record: FileProcess, folder_path: str) -> Optional[str]:
        """디스크에 남아 있는 파일 (변경된 이름 우선)"""
        for name in (record.new_filename, record.original_filename):
            if not name:
                continue
            path = os.path.join(folder_path, name)
            if os.path.exists(path):
                return path
        return None

    def reprocess_file(self, file_id: int) -> FileProcess:
        """
        기존 레코드를 지우고 새 pending 레코드로 다시 처리

        - existing : 폴더에 있는 현재 파일을 그대로 처리
        - 그 외    : 가장 최근 백업을 원래 이름으로 복원 후 처리
                     (백업이 없으면 현재 파일 사용)
        """
        record = self.store.require_file(file_id)
        if record.status in LIVE_STATUSES:
            raise ConflictError(f"이미 처리 대기/진행 중인 파일입니다: {record.original_filename}")

        folder_path = self._folder_path(record.folder_id)

        if record.status == EXISTING:
            target = self._current_file(record, folder_path)
            if not target:
                raise FileMissingError(f"파일을 찾을 수 없습니다: {record.current_filename}")
            action, message = "PROCESS_EXISTING", f"기존 파일 처리 요청: {os.path.basename(target)}"
        else:
            target = self._restore_backup(record, folder_path)
            action, message = "REPROCESS", f"재처리 요청: {os.path.basename(target)}"

        # 이전 기록 삭제 (로그 CASCADE) 후 새 레코드
        self.store.delete_file(record.id)
        fresh, _ = self.store.register_pending(record.folder_id, target)
        self.store.add_log(fresh.id, action, message, details=f"previous_id={record.id}")

        self.queue.enqueue(target, record.folder_id)
        logger.info(f"[REPROCESS] {record.id} -> {fresh.id}: {target}")
        return fresh

    def _restore_backup(self, record: FileProcess, folder_path: str) -> str:
        backup = find_latest_backup(self.backup_dir, record.original_filename)
        if backup:
            restored = os.path.join(folder_path, record.original_filename)
            shutil.copy2(backup, restored)
            logger.info(f"[REPROCESS] restored backup: {backup} -> {restored}")
            return restored

        current = self._current_file(record, folder_path)
        if not current:
            raise FileMissingError(
                f"백업과 원본 파일을 모두 찾을 수 없습니다: {record.original_filename}"
            )
        return current

    def manual_rename(self, file_id: int, new_filename: str) -> FileProcess:
        """AI 분석 없이 파일명만 변경"""
        record = self.store.require_file(file_id)

        name = os.path.basename((new_filename or "").strip())
        if not name:
            raise ConfigurationError("새 파일명이 비어있습니다.")
        name = ensure_document_ext(name)

        folder_path = self._folder_path(record.folder_id)

        current = self._current_file(record, folder_path)
        if not current:
            raise FileMissingError(f"파일을 찾을 수 없습니다: {record.current_filename}")

        target = os.path.join(folder_path, name)
        if os.path.exists(target):
            raise ConflictError(f"같은 이름의 파일이 이미 존재합니다: {name}")

        old_name = os.path.basename(current)
        os.rename(current, target)

        updated = self.store.update_file(record.id, new_filename=name)
        self.store.add_log(record.id, "MANUAL_RENAME", f"{old_name} → {name}")
        logger.info(f"[RENAME] manual: {old_name} -> {name}")
        return updated
