# batch/folder_scan.py

import os
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from models.file_process import COMPLETED, EXISTING
from pipeline.processing_queue import ProcessingQueue
from pipeline.store import FileStore
from services.folder_resolver import FolderResolver
from services.text_normalizer import SEPARATOR, DOCUMENT_EXT

logger = logging.getLogger("scanner")

DEFAULT_COMPANY = "알수없음"
DEFAULT_SUMMARY = "문서"


@dataclass
class ScanResult:
    total: int = 0
    registered: int = 0
    skipped: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "registered": self.registered,
            "skipped": self.skipped,
            "error": self.error,
        }


def split_processed_name(filename: str):
    """
    '업체명_내용.pdf' → ('업체명', '내용')
    이미 이름이 바뀐 파일로 간주할 때 사용
    """
    base = os.path.splitext(filename)[0]
    company, _, summary = base.partition(SEPARATOR)
    return company or DEFAULT_COMPANY, summary or DEFAULT_SUMMARY


class FolderScanner:
    """
    폴더 내 기존 PDF 를 DB 에 등록 (운영용)

    - 이미 기록이 있는 파일은 건너뜀 (재스캔 안전)
    - process_new_files=True 면 pending 등록 후 큐에 추가
    """

    def __init__(self, store: FileStore, resolver: FolderResolver, queue: ProcessingQueue):
        self.store = store
        self.resolver = resolver
        self.queue = queue

    def scan(self, folder, process_new_files: bool = False) -> ScanResult:
        resolved = self.resolver.resolve(folder)
        if not resolved.ok:
            logger.warning(f"[SCAN] resolve failed: {folder.alias} -> {resolved.error}")
            return ScanResult(error=resolved.error)

        folder_path = resolved.path
        if not os.path.isdir(folder_path):
            return ScanResult(error=f"폴더가 존재하지 않습니다: {folder_path}")

        logger.info(f"[SCAN] scanning folder: {folder_path}")

        try:
            files = sorted(
                f for f in os.listdir(folder_path)
                if f.lower().endswith(DOCUMENT_EXT)
                and os.path.isfile(os.path.join(folder_path, f))
            )
        except OSError as e:
            return ScanResult(error=f"폴더 읽기 실패: {e}")

        result = ScanResult(total=len(files))

        for filename in files:
            if self.store.find_file_by_name(folder.id, filename):
                result.skipped += 1
                continue

            file_path = os.path.join(folder_path, filename)
            self._register(folder.id, file_path, filename, process_new_files)
            result.registered += 1

        self.store.add_log(
            None, "SCAN",
            f"폴더 스캔 완료: {folder.alias} (전체 {result.total}, 등록 {result.registered}, 건너뜀 {result.skipped})",
            details=folder_path,
        )
        self.store.update_processing_state(scanned=True)

        logger.info(
            f"[SCAN] done: {folder.alias} total={result.total} "
            f"registered={result.registered} skipped={result.skipped}"
        )
        return result

    def _register(self, folder_id: int, file_path: str, filename: str, process_new_files: bool):
        if not process_new_files and SEPARATOR in filename:
            company, summary = split_processed_name(filename)
            self.store.create_file(
                folder_id, file_path, COMPLETED,
                new_filename=filename,
                company_name=company,
                content_summary=summary,
                processed_at=datetime.now(),
            )
            return

        if process_new_files:
            _, created = self.store.register_pending(folder_id, file_path)
            if created:
                self.queue.enqueue(file_path, folder_id)
            return

        self.store.create_file(folder_id, file_path, EXISTING, new_filename=filename)

    def rescan(self, folder_id: int) -> ScanResult:
        folder = self.store.require_folder(folder_id)
        return self.scan(folder, process_new_files=False)
