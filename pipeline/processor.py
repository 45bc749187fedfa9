# pipeline/processor.py
"""
파일 1건 처리 파이프라인

START → BACKUP → OCR → ANALYZE → RENAME → COMPLETE

- 단계마다 ProcessLog 기록
- Register 이후의 실패는 모두 여기서 잡아 failed 로 기록 (호출 측으로 전파하지 않음)
"""

import os
import logging
from datetime import datetime
from typing import Optional

from config.paths import BACKUP_DIR, FAILED_DIR
from config.settings import MAX_FILENAME_LENGTH, OCR_TEXT_MAX_LENGTH
from models.file_process import FileProcess, COMPLETED, FAILED, SKIPPED
from pipeline.exceptions import ExtractionError
from pipeline.store import FileStore
from services.analyzer import DocumentAnalyzer
from services.loaders.base import BaseTextExtractor
from services.text_normalizer import build_base_name, DOCUMENT_EXT
from services.utils.file_ops import copy_with_timestamp, resolve_duplicate_filename

logger = logging.getLogger("pipeline")

EMPTY_OCR_MESSAGE = "OCR 결과가 비어있습니다. 스캔 품질을 확인해주세요."


class FileProcessor:
    def __init__(
        self,
        store: FileStore,
        extractor: BaseTextExtractor,
        analyzer: DocumentAnalyzer,
        backup_dir: str = BACKUP_DIR,
        failed_dir: str = FAILED_DIR,
        max_filename_length: int = MAX_FILENAME_LENGTH,
        ocr_text_max: int = OCR_TEXT_MAX_LENGTH,
    ):
        self.store = store
        self.extractor = extractor
        self.analyzer = analyzer
        self.backup_dir = backup_dir
        self.failed_dir = failed_dir
        self.max_filename_length = max_filename_length
        self.ocr_text_max = ocr_text_max

    def process_file(self, file_path: str, folder_id: int) -> Optional[FileProcess]:
        filename = os.path.basename(file_path)

        # 1️⃣ Register
        if not os.path.exists(file_path):
            live = self.store.find_live_file(folder_id, filename)
            if not live:
                logger.warning(f"[PIPELINE] file gone before start: {file_path}")
                return None

            self.store.update_file(live.id, status=SKIPPED, error_message="파일을 찾을 수 없음")
            self.store.add_log(live.id, "SKIPPED", f"처리 전 파일이 사라짐: {filename}")
            logger.warning(f"[PIPELINE] skipped (missing): {file_path}")
            return self.store.get_file(live.id)

        record = self.store.claim_for_processing(folder_id, file_path)
        self.store.add_log(record.id, "START", f"처리 시작: {filename}")
        logger.info(f"[PIPELINE] start: {file_path} (id={record.id})")

        try:
            return self._run_stages(record, file_path)
        except Exception as e:
            self._fail(record, file_path, e)
            return self.store.get_file(record.id)

    def _run_stages(self, record: FileProcess, file_path: str) -> FileProcess:
        filename = os.path.basename(file_path)

        # 2️⃣ Backup
        backup_path = copy_with_timestamp(file_path, self.backup_dir)
        self.store.add_log(record.id, "BACKUP", "백업 완료", details=backup_path)

        # 3️⃣ OCR
        text = self.extractor.extract_text(file_path)
        if not text or not text.strip():
            raise ExtractionError(EMPTY_OCR_MESSAGE)
        self.store.add_log(record.id, "OCR", f"텍스트 추출 완료 ({len(text)}자)")

        # 4️⃣ AI 분석
        analysis = self.analyzer.analyze(text)
        self.store.add_log(
            record.id, "ANALYZE",
            f"업체명: {analysis.company_name}, 내용: {analysis.content_summary}",
            details=f"confidence={analysis.confidence}",
        )

        # 5️⃣ 파일명 결정 + 변경
        directory = os.path.dirname(file_path)
        base = build_base_name(
            analysis.company_name, analysis.content_summary, self.max_filename_length,
        )
        new_filename = resolve_duplicate_filename(os.listdir(directory), base + DOCUMENT_EXT)
        new_path = os.path.join(directory, new_filename)

        os.rename(file_path, new_path)
        self.store.add_log(record.id, "RENAME", f"{filename} → {new_filename}")

        # 6️⃣ 완료 기록
        completed = self.store.update_file(
            record.id,
            new_filename=new_filename,
            company_name=analysis.company_name,
            content_summary=analysis.content_summary,
            confidence=analysis.confidence,
            ocr_text=text[:self.ocr_text_max],
            status=COMPLETED,
            error_message=None,
            processed_at=datetime.now(),
        )
        self.store.update_processing_state(last_processed_file_id=record.id)
        self.store.add_log(record.id, "COMPLETE", f"처리 완료: {new_filename}")

        logger.info(f"[PIPELINE] completed: {filename} -> {new_filename}")
        return completed

    def _fail(self, record: FileProcess, file_path: str, error: Exception):
        message = getattr(error, "message", None) or str(error) or type(error).__name__
        stage = getattr(error, "stage", None)
        logger.error(f"[PIPELINE] failed: {file_path} -> {message}")

        if os.path.exists(file_path):
            try:
                failed_path = copy_with_timestamp(file_path, self.failed_dir)
                self.store.add_log(record.id, "MOVE_FAILED", "실패 폴더로 복사", details=failed_path)
            except OSError as copy_error:
                logger.error(f"[PIPELINE] failed-copy error: {file_path} -> {copy_error}")

        self.store.update_file(record.id, status=FAILED, error_message=message)
        self.store.add_log(record.id, "ERROR", message, details=stage)
