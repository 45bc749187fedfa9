# pipeline/recovery.py

import os
import logging
from dataclasses import dataclass

from models.file_process import PENDING, SKIPPED
from pipeline.processing_queue import ProcessingQueue
from pipeline.store import FileStore

logger = logging.getLogger("recovery")


@dataclass
class RecoveryResult:
    reset: int = 0
    requeued: int = 0
    skipped: int = 0

    def to_dict(self) -> dict:
        return {"reset": self.reset, "requeued": self.requeued, "skipped": self.skipped}


def recover_pending_files(store: FileStore, queue: ProcessingQueue) -> RecoveryResult:
    """
    서버 재시작 시 미완료 작업 복구

    - processing → pending (중단된 작업)
    - pending 은 오래된 순으로 다시 큐에 넣고, 파일이 없으면 skipped
    - 지금 큐가 처리 중이거나 대기 중인 경로는 건드리지 않음
    """
    result = RecoveryResult()
    in_flight = queue.tracked_paths()

    result.reset = store.reset_processing_to_pending(exclude_paths=in_flight)
    if result.reset:
        logger.info(f"[RECOVERY] processing -> pending: {result.reset}")

    for record in store.list_files_by_status(PENDING):
        if record.original_path in in_flight:
            continue
        if os.path.exists(record.original_path):
            if queue.enqueue(record.original_path, record.folder_id):
                result.requeued += 1
        else:
            store.update_file(record.id, status=SKIPPED, error_message="파일을 찾을 수 없음")
            store.add_log(record.id, "SKIPPED", "파일을 찾을 수 없음", details=record.original_path)
            result.skipped += 1

    # 이전 프로세스가 남긴 처리중 표시 정리 (큐가 이미 돌고 있으면 유지)
    if not queue.is_processing:
        store.update_processing_state(is_processing=False)

    store.add_log(
        None, "RECOVERY",
        f"복구 완료: 재설정 {result.reset}, 재등록 {result.requeued}, 건너뜀 {result.skipped}",
    )
    logger.info(f"[RECOVERY] {result}")
    return result
