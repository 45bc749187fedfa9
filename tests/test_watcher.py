import os
import threading
import time
from types import SimpleNamespace

import pytest

from models.file_process import COMPLETED, PENDING
from watcher.file_watcher import (
    PdfEventHandler,
    is_candidate_file,
    wait_until_ready,
)


def _wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.05)
    return False


@pytest.mark.parametrize("name, expected", [
    ("scan.pdf", True),
    ("SCAN.PDF", True),
    (".hidden.pdf", False),
    ("scan.pdf.part", False),
    ("scan.pdf.crdownload", False),
    ("scan.tmp", False),
    ("scan.txt", False),
])
def test_candidate_filter(name, expected):
    assert is_candidate_file(os.path.join("/watch", name)) is expected


def test_wait_until_ready(tmp_path):
    path = tmp_path / "doc.pdf"
    path.write_bytes(b"%PDF")

    assert wait_until_ready(str(path), stability_seconds=0.05, poll=0.01, timeout=2)
    assert not wait_until_ready(str(tmp_path / "gone.pdf"), stability_seconds=0.05, poll=0.01, timeout=1)


def test_moved_event_only_for_completed_temp_files():
    submitted = []
    registry = SimpleNamespace(submit=lambda folder_id, path: submitted.append(path))
    handler = PdfEventHandler(registry, folder_id=1)

    handler.on_moved(SimpleNamespace(is_directory=False, src_path="/w/a.pdf.part", dest_path="/w/a.pdf"))
    handler.on_moved(SimpleNamespace(is_directory=False, src_path="/w/a.pdf", dest_path="/w/Acme_Invoice.pdf"))
    handler.on_created(SimpleNamespace(is_directory=False, src_path="/w/~$lock.tmp"))
    handler.on_created(SimpleNamespace(is_directory=True, src_path="/w/dir.pdf"))

    assert submitted == ["/w/a.pdf"]


def test_watch_is_idempotent(ctx, local_folder):
    assert ctx.watchers.watch(local_folder).success
    assert ctx.watchers.watch(local_folder).success

    status = ctx.watchers.status()
    assert len(status) == 1
    assert status[0]["watching"] is True
    assert status[0]["observer"] == "native"

    ready_logs = [log for log in ctx.store.list_logs(system_only=True) if log.action == "WATCH_READY"]
    assert len(ready_logs) == 1

    assert ctx.watchers.unwatch(local_folder.id)
    assert not ctx.watchers.unwatch(local_folder.id)
    assert not ctx.watchers.is_watching(local_folder.id)


def test_watch_scans_existing_files(ctx, local_folder, watch_dir, make_pdf):
    make_pdf(watch_dir, "old.pdf")

    ctx.watchers.watch(local_folder)

    assert ctx.store.find_file_by_name(local_folder.id, "old.pdf").status == "existing"


def test_watch_missing_folder_reports_error(ctx, tmp_path):
    folder = ctx.store.create_folder(alias="없음", path=str(tmp_path / "missing"))

    result = ctx.watchers.watch(folder)

    assert not result.success
    assert not ctx.watchers.is_watching(folder.id)
    assert ctx.store.list_logs(system_only=True)[0].action == "WATCH_ERROR"


def test_remote_folder_uses_polling_observer(ctx, share_provider, tmp_path):
    share_provider.roots[("nas", "FAX3")] = str(tmp_path)
    folder = ctx.store.create_folder(alias="팩스", folder_type="remote", smb_host="nas", smb_share="FAX3")

    assert ctx.watchers.watch(folder, scan_existing=False).success
    assert ctx.watchers.status()[0]["observer"] == "polling"


def test_process_candidate_registers_once(ctx, local_folder, watch_dir, make_pdf):
    ctx.queue.handler = lambda path, folder_id: None
    path = make_pdf(watch_dir, "fax.pdf")

    record = ctx.watchers.process_candidate(local_folder.id, path)

    assert record.status == PENDING
    assert ctx.watchers.process_candidate(local_folder.id, path) is None
    assert ctx.queue.join(timeout=5)


def test_new_file_is_detected_and_processed(ctx, local_folder, watch_dir, make_pdf):
    assert ctx.watchers.watch(local_folder).success

    make_pdf(watch_dir, "incoming.pdf")

    assert _wait_for(lambda: ctx.store.find_file_by_name(local_folder.id, "incoming.pdf") is not None)
    assert _wait_for(
        lambda: ctx.store.find_file_by_name(local_folder.id, "incoming.pdf").status == COMPLETED
    )
    assert os.path.exists(watch_dir / "Acme_Invoice.pdf")

    # 파이프라인 자신의 이름 변경은 새 파일로 감지되지 않음
    time.sleep(0.3)
    assert ctx.store.find_file_by_name(local_folder.id, "Acme_Invoice.pdf").original_filename == "incoming.pdf"


def test_dead_observer_is_reported_once(ctx, local_folder):
    ctx.watchers.watch(local_folder, scan_existing=False)
    entry = ctx.watchers._watchers[local_folder.id]
    entry.observer.stop()
    entry.observer.join(timeout=5)

    first = ctx.watchers.status()
    ctx.watchers.status()

    assert first[0]["state"] == "error"
    errors = [log for log in ctx.store.list_logs(system_only=True) if log.action == "WATCH_ERROR"]
    assert len(errors) == 1


def test_start_all_only_active_folders(ctx, watch_dir, tmp_path):
    active = ctx.store.create_folder(alias="활성", path=str(watch_dir))
    inactive_dir = tmp_path / "inactive"
    inactive_dir.mkdir()
    inactive = ctx.store.create_folder(alias="비활성", path=str(inactive_dir), is_active=False)
    broken = ctx.store.create_folder(alias="고장", path=str(tmp_path / "missing"))

    results = ctx.watchers.start_all()

    assert results[active.id].success
    assert not results[broken.id].success
    assert inactive.id not in results


def test_slow_share_connect_does_not_block_status(ctx, share_provider, local_folder, tmp_path):
    share_provider.roots[("nas", "FAX3")] = str(tmp_path)
    connecting = threading.Event()
    gate = threading.Event()
    connect = share_provider.connect

    def slow_connect(host, share, username, password):
        connecting.set()
        gate.wait(timeout=5)
        return connect(host, share, username, password)

    share_provider.connect = slow_connect
    remote = ctx.store.create_folder(alias="팩스", folder_type="remote", smb_host="nas", smb_share="FAX3")

    results = []
    starter = threading.Thread(target=lambda: results.append(ctx.watchers.watch(remote)))
    starter.start()
    try:
        assert connecting.wait(timeout=5)

        began = time.monotonic()
        assert ctx.watchers.status() == []
        assert ctx.watchers.watch(local_folder).success
        assert time.monotonic() - began < 1.0

        # 시작 중인 폴더는 중복 시작하지 않음
        assert ctx.watchers.watch(remote).success
    finally:
        gate.set()
        starter.join(timeout=5)

    assert results[0].success
    assert ctx.watchers.is_watching(remote.id)
    assert ctx.watchers.is_watching(local_folder.id)
    assert share_provider.calls == [("nas", "FAX3", "")]
