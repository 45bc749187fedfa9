import pytest

from models.file_process import COMPLETED, EXISTING, PENDING
from pipeline.exceptions import NotFoundError


def test_scan_registers_plain_pdf_as_existing(ctx, local_folder, watch_dir, make_pdf):
    make_pdf(watch_dir, "invoice1.pdf")

    result = ctx.scanner.scan(local_folder, process_new_files=False)

    assert (result.total, result.registered, result.skipped) == (1, 1, 0)
    assert result.error is None

    record = ctx.store.find_file_by_name(local_folder.id, "invoice1.pdf")
    assert record.status == EXISTING
    assert record.new_filename == "invoice1.pdf"


def test_scan_is_idempotent(ctx, local_folder, watch_dir, make_pdf):
    make_pdf(watch_dir, "a.pdf")
    make_pdf(watch_dir, "b.pdf")

    first = ctx.scanner.scan(local_folder)
    second = ctx.scanner.scan(local_folder)

    assert first.registered == 2
    assert (second.total, second.registered, second.skipped) == (2, 0, 2)


def test_scan_ignores_non_pdf_and_directories(ctx, local_folder, watch_dir, make_pdf):
    make_pdf(watch_dir, "scan.PDF")
    (watch_dir / "notes.txt").write_text("x")
    (watch_dir / "sub.pdf").mkdir()

    result = ctx.scanner.scan(local_folder)

    assert result.total == 1
    assert result.registered == 1


def test_scan_treats_underscore_names_as_already_renamed(ctx, local_folder, watch_dir, make_pdf):
    make_pdf(watch_dir, "대한상사_견적서.pdf")
    make_pdf(watch_dir, "_무제.pdf")

    ctx.scanner.scan(local_folder, process_new_files=False)

    renamed = ctx.store.find_file_by_name(local_folder.id, "대한상사_견적서.pdf")
    assert renamed.status == COMPLETED
    assert renamed.company_name == "대한상사"
    assert renamed.content_summary == "견적서"
    assert renamed.processed_at is not None

    untitled = ctx.store.find_file_by_name(local_folder.id, "_무제.pdf")
    assert untitled.company_name == "알수없음"
    assert untitled.content_summary == "무제"


def test_scan_with_processing_registers_pending_and_enqueues(ctx, local_folder, watch_dir, make_pdf):
    ctx.queue.handler = lambda path, folder_id: None
    make_pdf(watch_dir, "new_scan.pdf")

    result = ctx.scanner.scan(local_folder, process_new_files=True)

    assert result.registered == 1
    record = ctx.store.find_file_by_name(local_folder.id, "new_scan.pdf")
    assert record.status == PENDING
    assert ctx.queue.join(timeout=5)


def test_scan_writes_log_and_scan_time(ctx, local_folder, watch_dir, make_pdf):
    make_pdf(watch_dir, "a.pdf")

    ctx.scanner.scan(local_folder)

    actions = [log.action for log in ctx.store.list_logs(system_only=True)]
    assert "SCAN" in actions
    assert ctx.store.get_processing_state().last_scan_time is not None


def test_scan_missing_directory_returns_error(ctx, tmp_path):
    folder = ctx.store.create_folder(alias="없음", path=str(tmp_path / "nope"))

    result = ctx.scanner.scan(folder)

    assert result.error
    assert result.total == 0
    assert ctx.store.list_logs(system_only=True) == []


def test_scan_remote_folder_uses_share_session(ctx, share_provider, tmp_path, make_pdf):
    share_root = tmp_path / "share"
    (share_root / "in").mkdir(parents=True)
    make_pdf(share_root / "in", "fax.pdf")
    share_provider.roots[("nas", "FAX3")] = str(share_root)

    folder = ctx.store.create_folder(
        alias="팩스", path="in", folder_type="remote", smb_host="nas", smb_share="FAX3",
    )

    result = ctx.scanner.scan(folder)

    assert result.registered == 1
    assert share_provider.calls == [("nas", "FAX3", "")]


def test_rescan_unknown_folder_raises(ctx):
    with pytest.raises(NotFoundError):
        ctx.scanner.rescan(9999)
