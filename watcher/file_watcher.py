# watcher/file_watcher.py
"""
감시 폴더별 파일 감시

- local  : watchdog Observer (OS 네이티브 이벤트)
- remote : watchdog PollingObserver (SMB 공유폴더는 네이티브 이벤트가 불안정)
- 새 PDF 감지 → 쓰기 완료 대기(debounce) → pending 등록 → 처리 큐
"""

import os
import time
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Set

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.polling import PollingObserver

from batch.folder_scan import FolderScanner
from config.settings import (
    WATCH_STABILITY_SECONDS,
    WATCH_STABILITY_POLL,
    WATCH_READY_TIMEOUT,
    WATCH_POLL_INTERVAL,
    LOCAL_WATCH_ENABLED,
    LOCAL_WATCH_FOLDER,
)
from models.file_process import FileProcess
from models.folder import FOLDER_LOCAL
from pipeline.processing_queue import ProcessingQueue
from pipeline.store import FileStore
from services.folder_resolver import FolderResolver
from services.text_normalizer import DOCUMENT_EXT

logger = logging.getLogger("watcher")

# 다운로드/복사 중 임시 파일
TEMP_SUFFIXES = (".tmp", ".part", ".crdownload")

STATE_WATCHING = "watching"
STATE_ERROR = "error"

OBSERVER_NATIVE = "native"
OBSERVER_POLLING = "polling"


def is_candidate_file(file_path: str) -> bool:
    name = os.path.basename(file_path)
    lower = name.lower()

    if name.startswith("."):
        return False
    if lower.endswith(TEMP_SUFFIXES):
        return False
    return lower.endswith(DOCUMENT_EXT)


def wait_until_ready(file_path: str,
                     stability_seconds: float = WATCH_STABILITY_SECONDS,
                     poll: float = WATCH_STABILITY_POLL,
                     timeout: float = WATCH_READY_TIMEOUT) -> bool:
    """
    파일 크기/수정시각이 stability_seconds 동안 변하지 않을 때까지 대기
    (복사 중 처리 방지)
    """
    deadline = time.monotonic() + timeout
    last_signature = None
    stable_since = 0.0

    while time.monotonic() < deadline:
        try:
            stat = os.stat(file_path)
        except FileNotFoundError:
            return False

        signature = (stat.st_size, stat.st_mtime)
        now = time.monotonic()

        if signature != last_signature:
            last_signature = signature
            stable_since = now
        elif now - stable_since >= stability_seconds:
            return True

        time.sleep(poll)

    return False


@dataclass
class WatchResult:
    success: bool
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {"success": self.success, "error": self.error}


@dataclass
class WatchEntry:
    folder_id: int
    alias: str
    path: str
    observer: object
    kind: str
    state: str = STATE_WATCHING
    error: Optional[str] = None
    started_at: datetime = field(default_factory=datetime.now)


# ==========================
# Watcher Handler
# ==========================

class PdfEventHandler(FileSystemEventHandler):
    """
    감시 폴더 이벤트 → 후보 파일만 registry 로 전달
    (실제 대기/등록은 registry 의 스레드 풀에서 수행)
    """

    def __init__(self, registry: "FolderWatcherRegistry", folder_id: int):
        super().__init__()
        self.registry = registry
        self.folder_id = folder_id

    def on_created(self, event):
        if event.is_directory:
            return

        if is_candidate_file(event.src_path):
            self.registry.submit(self.folder_id, event.src_path)

    def on_moved(self, event):
        if event.is_directory:
            return

        # 'x.pdf.part' → 'x.pdf' 처럼 임시 파일이 완성된 경우만
        # (PDF → PDF 이동은 파이프라인 자신의 이름 변경)
        if is_candidate_file(event.src_path):
            return

        if is_candidate_file(event.dest_path):
            self.registry.submit(self.folder_id, event.dest_path)


# ==========================
# Registry
# ==========================

class FolderWatcherRegistry:
    def __init__(
        self,
        store: FileStore,
        resolver: FolderResolver,
        scanner: FolderScanner,
        queue: ProcessingQueue,
        stability_seconds: float = WATCH_STABILITY_SECONDS,
        stability_poll: float = WATCH_STABILITY_POLL,
        ready_timeout: float = WATCH_READY_TIMEOUT,
        poll_interval: float = WATCH_POLL_INTERVAL,
        max_workers: int = 4,
    ):
        self.store = store
        self.resolver = resolver
        self.scanner = scanner
        self.queue = queue

        self.stability_seconds = stability_seconds
        self.stability_poll = stability_poll
        self.ready_timeout = ready_timeout
        self.poll_interval = poll_interval

        self._watchers: Dict[int, WatchEntry] = {}
        self._lock = threading.RLock()
        self._starting: Set[int] = set()

        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="watch-ready")
        self._in_flight = set()
        self._in_flight_lock = threading.Lock()

    # --------------------------
    # 감시 시작 / 중지
    # --------------------------

    def watch(self, folder, scan_existing: bool = True) -> WatchResult:
        # 폴더 ID 만 잠금 안에서 예약, 연결 / 스캔은 잠금 밖에서
        with self._lock:
            if folder.id in self._watchers or folder.id in self._starting:
                return WatchResult(success=True)
            self._starting.add(folder.id)

        try:
            return self._start_watch(folder, scan_existing)
        finally:
            with self._lock:
                self._starting.discard(folder.id)

    def _start_watch(self, folder, scan_existing: bool) -> WatchResult:
        resolved = self.resolver.resolve(folder)
        if not resolved.ok:
            return self._watch_failed(folder, resolved.error)

        folder_path = resolved.path
        if not os.path.isdir(folder_path):
            return self._watch_failed(folder, f"폴더가 존재하지 않습니다: {folder_path}")

        if scan_existing:
            scan = self.scanner.scan(folder, process_new_files=False)
            if not scan.ok:
                logger.warning(f"[WATCH] initial scan failed: {folder.alias} -> {scan.error}")

        if folder.is_remote:
            observer = PollingObserver(timeout=self.poll_interval)
            kind = OBSERVER_POLLING
        else:
            observer = Observer()
            kind = OBSERVER_NATIVE

        try:
            observer.schedule(PdfEventHandler(self, folder.id), folder_path, recursive=False)
            observer.start()
        except OSError as e:
            return self._watch_failed(folder, f"감시 시작 실패: {e}")

        entry = WatchEntry(
            folder_id=folder.id,
            alias=folder.alias,
            path=folder_path,
            observer=observer,
            kind=kind,
        )
        with self._lock:
            # 시작 도중 unwatch 된 경우 예약이 이미 빠져 있음
            cancelled = folder.id not in self._starting
            if not cancelled:
                self._watchers[folder.id] = entry

        if cancelled:
            self._stop_observer(entry)
            logger.info(f"[WATCH] cancelled while starting: {folder.alias}")
            return WatchResult(success=False, error="감시 시작이 취소되었습니다.")

        self.store.add_log(None, "WATCH_READY", f"폴더 감시 시작: {folder.alias}", details=folder_path)
        logger.info(f"[WATCH] ready: {folder.alias} ({kind}) -> {folder_path}")
        return WatchResult(success=True)

    def _watch_failed(self, folder, error: str) -> WatchResult:
        logger.error(f"[WATCH] start failed: {folder.alias} -> {error}")
        self.store.add_log(None, "WATCH_ERROR", f"폴더 감시 시작 실패: {folder.alias}", details=error)
        return WatchResult(success=False, error=error)

    def unwatch(self, folder_id: int) -> bool:
        with self._lock:
            entry = self._watchers.pop(folder_id, None)
            if not entry:
                if folder_id in self._starting:
                    self._starting.discard(folder_id)
                    logger.info(f"[WATCH] start cancelled: {folder_id}")
                    return True
                return False

        self._stop_observer(entry)
        self.store.add_log(None, "WATCH_STOP", f"폴더 감시 중지: {entry.alias}", details=entry.path)
        logger.info(f"[WATCH] stopped: {entry.alias}")
        return True

    def unwatch_all(self):
        with self._lock:
            folder_ids = list(self._watchers)
        for folder_id in folder_ids:
            self.unwatch(folder_id)

    def _stop_observer(self, entry: WatchEntry):
        try:
            entry.observer.stop()
            entry.observer.join(timeout=5)
        except RuntimeError as e:
            # 시작되지 않았거나 이미 죽은 스레드
            logger.warning(f"[WATCH] observer stop error: {entry.alias} -> {e}")

    def start_all(self) -> Dict[int, WatchResult]:
        """활성 폴더 전체 감시 (한 폴더의 실패가 다른 폴더에 영향 없음)"""
        results = {}
        for folder in self.store.list_folders(active_only=True):
            try:
                results[folder.id] = self.watch(folder)
            except Exception as e:
                logger.exception(f"[WATCH] unexpected start error: {folder.alias}")
                self.store.add_log(None, "WATCH_ERROR", f"폴더 감시 시작 실패: {folder.alias}", details=str(e))
                results[folder.id] = WatchResult(success=False, error=str(e))
        return results

    def close(self):
        self.unwatch_all()
        self._executor.shutdown(wait=False)

    # --------------------------
    # 상태
    # --------------------------

    def is_watching(self, folder_id: int) -> bool:
        with self._lock:
            entry = self._watchers.get(folder_id)
            return entry is not None and entry.state == STATE_WATCHING

    def check_health(self):
        """죽은 observer 감지 (자동 재시작 없음, 오류 로그는 한 번만)"""
        failed: List[WatchEntry] = []

        with self._lock:
            for entry in self._watchers.values():
                if entry.state != STATE_WATCHING:
                    continue
                if self._observer_alive(entry.observer):
                    continue
                entry.state = STATE_ERROR
                entry.error = "감시 스레드가 중지되었습니다."
                failed.append(entry)

        for entry in failed:
            logger.error(f"[WATCH] observer died: {entry.alias}")
            self.store.add_log(None, "WATCH_ERROR", f"폴더 감시 중단됨: {entry.alias}", details=entry.error)

    @staticmethod
    def _observer_alive(observer) -> bool:
        if not observer.is_alive():
            return False
        return all(emitter.is_alive() for emitter in observer.emitters)

    def status(self) -> List[dict]:
        self.check_health()

        with self._lock:
            return [
                {
                    "folder_id": entry.folder_id,
                    "alias": entry.alias,
                    "watching": entry.state == STATE_WATCHING,
                    "state": entry.state,
                    "path": entry.path,
                    "observer": entry.kind,
                    "error": entry.error,
                    "started_at": entry.started_at.isoformat(),
                }
                for entry in self._watchers.values()
            ]

    # --------------------------
    # 이벤트 처리
    # --------------------------

    def submit(self, folder_id: int, file_path: str):
        with self._in_flight_lock:
            if file_path in self._in_flight:
                return
            self._in_flight.add(file_path)

        logger.info(f"[WATCH] detected: {file_path}")
        self._executor.submit(self._handle_candidate, folder_id, file_path)

    def _handle_candidate(self, folder_id: int, file_path: str):
        try:
            ready = wait_until_ready(
                file_path,
                stability_seconds=self.stability_seconds,
                poll=self.stability_poll,
                timeout=self.ready_timeout,
            )
            if not ready:
                logger.warning(f"[WATCH] file not ready: {file_path}")
                return

            self.process_candidate(folder_id, file_path)

        except Exception as e:
            logger.exception(f"[WATCH] handling error: {file_path}")
            self.store.add_log(
                None, "WATCH_ERROR", f"파일 감지 처리 오류: {os.path.basename(file_path)}",
                details=str(e),
            )
        finally:
            with self._in_flight_lock:
                self._in_flight.discard(file_path)

    def process_candidate(self, folder_id: int, file_path: str) -> Optional[FileProcess]:
        """쓰기 완료된 파일 → pending 등록 + 큐 추가"""
        filename = os.path.basename(file_path)

        if self.store.find_file_by_name(folder_id, filename):
            logger.info(f"[WATCH] already registered: {filename}")
            return None

        record, created = self.store.register_pending(folder_id, file_path)
        if not created:
            return None

        self.store.add_log(record.id, "FILE_DETECTED", f"새 파일 감지: {filename}", details=file_path)
        self.queue.enqueue(file_path, folder_id)
        return record

    # --------------------------
    # 로컬 테스트 폴더
    # --------------------------

    def setup_local_test_folder(self):
        if not LOCAL_WATCH_ENABLED:
            return None

        path = os.path.abspath(LOCAL_WATCH_FOLDER)
        os.makedirs(path, exist_ok=True)

        folder = self.store.find_folder_by_path(path)
        if folder:
            return folder

        folder = self.store.create_folder(alias="로컬 테스트", path=path, folder_type=FOLDER_LOCAL)
        self.store.add_log(None, "FOLDER", f"로컬 테스트 폴더 등록: {path}")
        logger.info(f"[WATCH] local test folder registered: {path}")
        return folder
