# pipeline/state.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from batch.folder_scan import FolderScanner
from pipeline.file_actions import FileActions
from pipeline.processing_queue import ProcessingQueue
from pipeline.processor import FileProcessor
from pipeline.store import FileStore
from services.folder_resolver import FolderResolver
from watcher.file_watcher import FolderWatcherRegistry


@dataclass
class PipelineContext:
    """서버 프로세스당 하나 (app.state.pipeline)"""

    store: FileStore
    resolver: FolderResolver
    queue: ProcessingQueue
    processor: FileProcessor
    actions: FileActions
    scanner: FolderScanner
    watchers: FolderWatcherRegistry
    started_at: datetime | None = None

    @property
    def is_running(self) -> bool:
        return self.started_at is not None
