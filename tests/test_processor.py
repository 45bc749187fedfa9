import os

import pytest

from models.file_process import COMPLETED, EXISTING, FAILED, PENDING, SKIPPED
from pipeline.exceptions import ConflictError, FileMissingError, NotFoundError
from pipeline.store import FileFilter


def _actions(ctx, record_id):
    return [log.action for log in reversed(ctx.store.list_logs(file_process_id=record_id))]


def test_process_file_renames_and_backs_up(ctx, local_folder, watch_dir, data_dirs, make_pdf):
    path = make_pdf(watch_dir, "scan001.pdf")

    record = ctx.processor.process_file(path, local_folder.id)

    assert record.status == COMPLETED
    assert record.new_filename == "Acme_Invoice.pdf"
    assert record.company_name == "Acme"
    assert record.confidence == 90
    assert record.processed_at is not None
    assert not os.path.exists(path)
    assert os.path.exists(watch_dir / "Acme_Invoice.pdf")

    backups = os.listdir(data_dirs["backup"])
    assert len(backups) == 1
    assert backups[0].endswith("Z_scan001.pdf")

    assert _actions(ctx, record.id) == ["START", "BACKUP", "OCR", "ANALYZE", "RENAME", "COMPLETE"]
    assert ctx.store.get_processing_state().last_processed_file_id == record.id


def test_name_collision_gets_suffix(ctx, local_folder, watch_dir, make_pdf):
    make_pdf(watch_dir, "Acme_Invoice.pdf")
    path = make_pdf(watch_dir, "scan002.pdf")

    record = ctx.processor.process_file(path, local_folder.id)

    assert record.new_filename == "Acme_Invoice_1.pdf"


def test_empty_ocr_marks_failed_and_copies(ctx, local_folder, watch_dir, data_dirs, extractor, make_pdf):
    extractor.text = "   \n  "
    path = make_pdf(watch_dir, "blank.pdf")

    record = ctx.processor.process_file(path, local_folder.id)

    assert record.status == FAILED
    assert record.error_message == "OCR 결과가 비어있습니다. 스캔 품질을 확인해주세요."
    assert os.path.exists(path)
    failed = os.listdir(data_dirs["failed"])
    assert len(failed) == 1 and failed[0].endswith("_blank.pdf")
    assert _actions(ctx, record.id)[-2:] == ["MOVE_FAILED", "ERROR"]


def test_ocr_text_is_truncated(ctx, local_folder, watch_dir, extractor, make_pdf):
    extractor.text = "가" * 20000
    path = make_pdf(watch_dir, "long.pdf")

    record = ctx.processor.process_file(path, local_folder.id)

    assert len(record.ocr_text) == 10000


def test_register_claims_pending_record(ctx, local_folder, watch_dir, make_pdf):
    path = make_pdf(watch_dir, "queued.pdf")
    pending, created = ctx.store.register_pending(local_folder.id, path)
    assert created

    record = ctx.processor.process_file(path, local_folder.id)

    assert record.id == pending.id
    _, total = ctx.store.list_files(FileFilter())
    assert total == 1


def test_missing_file_skips_pending_record(ctx, local_folder, watch_dir):
    path = str(watch_dir / "gone.pdf")
    pending, _ = ctx.store.register_pending(local_folder.id, path)

    record = ctx.processor.process_file(path, local_folder.id)

    assert record.id == pending.id
    assert record.status == SKIPPED


def test_missing_file_without_record_writes_nothing(ctx, local_folder, watch_dir):
    assert ctx.processor.process_file(str(watch_dir / "ghost.pdf"), local_folder.id) is None
    assert ctx.store.find_file_by_name(local_folder.id, "ghost.pdf") is None


# --------------------------
# 재처리 / 수동 이름 변경
# --------------------------

def test_existing_file_scenario(ctx, local_folder, watch_dir, make_pdf):
    make_pdf(watch_dir, "invoice1.pdf")
    ctx.scanner.scan(local_folder)
    existing = ctx.store.find_file_by_name(local_folder.id, "invoice1.pdf")
    assert existing.status == EXISTING

    fresh = ctx.actions.reprocess_file(existing.id)
    assert fresh.status == PENDING
    assert ctx.queue.join(timeout=5)

    done = ctx.store.get_file(fresh.id)
    assert done.status == COMPLETED
    assert done.new_filename == "Acme_Invoice.pdf"
    assert ctx.store.get_file(existing.id) is None
    assert os.path.exists(watch_dir / "Acme_Invoice.pdf")
    assert not os.path.exists(watch_dir / "invoice1.pdf")


def test_reprocess_failed_restores_backup(ctx, local_folder, watch_dir, extractor, make_pdf):
    extractor.text = ""
    path = make_pdf(watch_dir, "bad.pdf", b"%PDF-1.4 original bytes")
    failed = ctx.processor.process_file(path, local_folder.id)
    assert failed.status == FAILED

    os.remove(path)
    extractor.text = "ACME invoice"

    fresh = ctx.actions.reprocess_file(failed.id)
    assert ctx.queue.join(timeout=5)

    assert fresh.id != failed.id
    assert ctx.store.get_file(failed.id) is None
    done = ctx.store.get_file(fresh.id)
    assert done.status == COMPLETED
    assert (watch_dir / done.new_filename).read_bytes() == b"%PDF-1.4 original bytes"
    assert "REPROCESS" in _actions(ctx, fresh.id)


def test_reprocess_without_backup_or_file_fails(ctx, local_folder, watch_dir):
    record = ctx.store.create_file(local_folder.id, str(watch_dir / "lost.pdf"), FAILED)

    with pytest.raises(FileMissingError):
        ctx.actions.reprocess_file(record.id)


def test_reprocess_live_record_conflicts(ctx, local_folder, watch_dir, make_pdf):
    path = make_pdf(watch_dir, "busy.pdf")
    pending, _ = ctx.store.register_pending(local_folder.id, path)

    with pytest.raises(ConflictError):
        ctx.actions.reprocess_file(pending.id)


def test_reprocess_unknown_id(ctx):
    with pytest.raises(NotFoundError):
        ctx.actions.reprocess_file(12345)


def test_manual_rename(ctx, local_folder, watch_dir, make_pdf):
    path = make_pdf(watch_dir, "scan.pdf")
    record = ctx.processor.process_file(path, local_folder.id)

    renamed = ctx.actions.manual_rename(record.id, "../대한상사_계약서")

    assert renamed.new_filename == "대한상사_계약서.pdf"
    assert renamed.company_name == "Acme"
    assert os.path.exists(watch_dir / "대한상사_계약서.pdf")
    assert not os.path.exists(watch_dir / "Acme_Invoice.pdf")
    assert "MANUAL_RENAME" in _actions(ctx, record.id)


def test_manual_rename_rejects_existing_target(ctx, local_folder, watch_dir, make_pdf):
    make_pdf(watch_dir, "taken.pdf")
    path = make_pdf(watch_dir, "scan.pdf")
    record = ctx.processor.process_file(path, local_folder.id)

    with pytest.raises(ConflictError):
        ctx.actions.manual_rename(record.id, "taken.pdf")


def test_reprocess_restores_own_backup_not_similar_name(ctx, local_folder, watch_dir, extractor, make_pdf):
    extractor.text = ""
    path = make_pdf(watch_dir, "a.pdf", b"%PDF A-bytes")
    failed = ctx.processor.process_file(path, local_folder.id)
    assert failed.status == FAILED

    extractor.text = "ACME invoice"
    other = make_pdf(watch_dir, "scan_a.pdf", b"%PDF OTHER-bytes")
    assert ctx.processor.process_file(other, local_folder.id).status == COMPLETED
    os.remove(path)

    fresh = ctx.actions.reprocess_file(failed.id)
    assert ctx.queue.join(timeout=5)

    done = ctx.store.get_file(fresh.id)
    assert done.status == COMPLETED
    assert done.original_filename == "a.pdf"
    assert (watch_dir / done.new_filename).read_bytes() == b"%PDF A-bytes"
