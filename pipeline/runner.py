import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from batch.folder_scan import FolderScanner
from config.db import SessionLocal, init_db
from config.paths import BACKUP_DIR, FAILED_DIR, ensure_directories
from config.runtime_settings import runtime_settings
from pipeline.file_actions import FileActions
from pipeline.processing_queue import ProcessingQueue
from pipeline.processor import FileProcessor
from pipeline.recovery import recover_pending_files
from pipeline.state import PipelineContext
from pipeline.store import FileStore
from services.analyzer import DocumentAnalyzer
from services.folder_resolver import FolderResolver, ShareSessionProvider
from services.loaders.base import BaseTextExtractor
from services.loaders.pdf_loader import PDFOCRLoader
from watcher.file_watcher import FolderWatcherRegistry

logger = logging.getLogger("pipeline")


def build_context(
    session_factory: Callable[[], Session] = SessionLocal,
    extractor: Optional[BaseTextExtractor] = None,
    analyzer: Optional[DocumentAnalyzer] = None,
    provider: Optional[ShareSessionProvider] = None,
    backup_dir: str = BACKUP_DIR,
    failed_dir: str = FAILED_DIR,
    **watcher_options,
) -> PipelineContext:
    store = FileStore(session_factory)
    resolver = FolderResolver(provider)

    queue = ProcessingQueue(store)
    processor = FileProcessor(
        store,
        extractor or PDFOCRLoader(),
        analyzer or DocumentAnalyzer(),
        backup_dir=backup_dir,
        failed_dir=failed_dir,
    )
    queue.handler = processor.process_file

    scanner = FolderScanner(store, resolver, queue)
    watchers = FolderWatcherRegistry(store, resolver, scanner, queue, **watcher_options)

    return PipelineContext(
        store=store,
        resolver=resolver,
        queue=queue,
        processor=processor,
        actions=FileActions(store, resolver, queue, backup_dir=backup_dir),
        scanner=scanner,
        watchers=watchers,
    )


def start_pipeline(ctx: PipelineContext, prepare_db: bool = True):
    if ctx.is_running:
        logger.warning("Pipeline already running")
        return

    logger.info("🚀 Rename Pipeline Starting...")

    if prepare_db:
        init_db()
        runtime_settings.reload_from_db()

    ensure_directories()

    try:
        ctx.watchers.setup_local_test_folder()
    except Exception:
        logger.exception("[WATCH] local test folder setup failed")

    logger.info("👀 Starting folder watchers...")
    results = ctx.watchers.start_all()
    watching = sum(1 for r in results.values() if r.success)

    logger.info("♻️ Recovering pending files...")
    try:
        recover_pending_files(ctx.store, ctx.queue)
    except Exception:
        logger.exception("[RECOVERY] failed")

    ctx.started_at = datetime.now()
    ctx.store.add_log(None, "SYSTEM", f"파이프라인 시작 (감시 폴더 {watching}/{len(results)})")

    logger.info("✅ Pipeline running")
    logger.info(f"   - watching: {watching}/{len(results)} folders")


def stop_pipeline(ctx: PipelineContext):
    if not ctx.is_running:
        return

    logger.info("🛑 Shutting down pipeline...")
    ctx.watchers.unwatch_all()
    ctx.started_at = None

    ctx.store.add_log(None, "SYSTEM", "파이프라인 중지")
    logger.info("✅ Pipeline stopped cleanly")


def restart_pipeline(ctx: PipelineContext):
    logger.info("🔁 Restarting pipeline...")
    stop_pipeline(ctx)
    start_pipeline(ctx, prepare_db=False)
    logger.info("✅ Pipeline restarted")
