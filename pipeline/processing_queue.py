# pipeline/processing_queue.py
"""
처리 큐 (FIFO + 단일 워커)

- enqueue 는 잠금 안에서 append 후, 워커가 쉬고 있으면 새 워커 스레드 시작
- 워커는 큐가 빌 때까지 한 건씩 끝까지 처리 (동시 처리 없음)
- '큐가 비었는지 확인 → active 해제' 를 같은 잠금 안에서 수행하므로
  append 유실 / 중복 소비가 없음
"""

import os
import uuid
import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Deque, Optional, Set

from pipeline.store import FileStore

logger = logging.getLogger("pipeline")


@dataclass
class QueueItem:
    file_path: str
    folder_id: int
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    added_at: datetime = field(default_factory=datetime.now)


class ProcessingQueue:
    def __init__(self, store: FileStore, handler: Optional[Callable[[str, int], object]] = None):
        self.store = store
        self.handler = handler

        self._items: Deque[QueueItem] = deque()
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._active = False
        self._current: Optional[QueueItem] = None

    def enqueue(self, file_path: str, folder_id: int) -> Optional[str]:
        """
        큐에 파일 추가

        Returns:
            큐 항목 ID (이미 대기 중이거나 처리 중인 경로면 None)
        """
        with self._lock:
            if file_path in self._tracked_paths():
                logger.info(f"[QUEUE] already queued: {file_path}")
                return None

            item = QueueItem(file_path=file_path, folder_id=folder_id)
            self._items.append(item)
            logger.info(f"[QUEUE] added: {file_path} (total {len(self._items)})")

            start_worker = not self._active
            self._active = True

        if start_worker:
            self._start_worker()

        return item.id

    def _tracked_paths(self) -> Set[str]:
        paths = {item.file_path for item in self._items}
        if self._current is not None:
            paths.add(self._current.file_path)
        return paths

    def tracked_paths(self) -> Set[str]:
        """처리 중 + 대기 중인 경로"""
        with self._lock:
            return self._tracked_paths()

    def _start_worker(self):
        worker = threading.Thread(target=self._run, name="processing-queue", daemon=True)
        worker.start()

    def _run(self):
        self._mark_cycle(True)
        try:
            while True:
                with self._lock:
                    if not self._items:
                        self._active = False
                        self._current = None
                        self._idle.notify_all()
                        return
                    item = self._items.popleft()
                    self._current = item

                try:
                    self._process(item)
                finally:
                    with self._lock:
                        self._current = None
        finally:
            self._mark_cycle(False)

    def _process(self, item: QueueItem):
        if self.handler is None:
            logger.error(f"[QUEUE] no handler, dropped: {item.file_path}")
            return

        try:
            self.handler(item.file_path, item.folder_id)
        except Exception:
            # 한 파일의 실패가 큐 전체를 멈추면 안 됨
            logger.exception(f"[QUEUE] unexpected error: {item.file_path}")

    def _mark_cycle(self, active: bool):
        try:
            self.store.update_processing_state(is_processing=active)
        except Exception as e:
            logger.warning(f"[QUEUE] processing state update failed: {e}")

    def join(self, timeout: Optional[float] = None) -> bool:
        """큐가 빌 때까지 대기 (True = idle)"""
        with self._lock:
            return self._idle.wait_for(lambda: not self._active, timeout=timeout)

    @property
    def is_processing(self) -> bool:
        with self._lock:
            return self._active

    def status(self) -> dict:
        with self._lock:
            current = self._current
            return {
                "is_processing": self._active,
                "queue_length": len(self._items),
                "current": os.path.basename(current.file_path) if current else None,
                "items": [
                    {
                        "id": item.id,
                        "filename": os.path.basename(item.file_path),
                        "folder_id": item.folder_id,
                        "added_at": item.added_at.isoformat(),
                    }
                    for item in self._items
                ],
            }
