import pytest
from fastapi.testclient import TestClient

from app.main import app
from models.file_process import EXISTING


@pytest.fixture
def test_client(ctx):
    # lifespan 없이 테스트용 파이프라인만 연결
    app.state.pipeline = ctx
    yield TestClient(app)
    app.state.pipeline = None


def test_unknown_ids_return_404(test_client):
    assert test_client.get("/files/999").status_code == 404
    assert test_client.post("/files/999/reprocess").status_code == 404
    assert test_client.patch("/files/999", json={"new_filename": "x"}).status_code == 404
    assert test_client.get("/folders/999").status_code == 404
    assert test_client.post("/folders/999/scan").status_code == 404


def test_folder_crud_and_scan(test_client, watch_dir, make_pdf):
    make_pdf(watch_dir, "invoice1.pdf")

    response = test_client.post("/folders", json={
        "alias": "스캔함",
        "path": str(watch_dir),
        "is_active": False,
        "dept_codes": ["D01", "D02"],
    })
    assert response.status_code == 201
    folder = response.json()["folder"]
    assert folder["dept_codes"] == ["D01", "D02"]
    assert folder["watching"] is False

    scan = test_client.post(f"/folders/{folder['id']}/scan").json()
    assert (scan["total"], scan["registered"], scan["skipped"]) == (1, 1, 0)

    files = test_client.get("/files", params={"status": EXISTING}).json()
    assert files["total"] == 1
    assert files["items"][0]["original_filename"] == "invoice1.pdf"

    deleted = test_client.delete(f"/folders/{folder['id']}")
    assert deleted.status_code == 200
    assert test_client.get("/files").json()["total"] == 0


def test_remote_folder_without_host_is_rejected(test_client):
    response = test_client.post("/folders", json={"alias": "팩스", "folder_type": "remote"})
    assert response.status_code == 400


def test_activate_folder_starts_watch(test_client, ctx, watch_dir):
    folder = ctx.store.create_folder(alias="스캔함", path=str(watch_dir), is_active=False)

    response = test_client.patch(f"/folders/{folder.id}", json={"is_active": True})
    assert response.status_code == 200
    assert ctx.watchers.is_watching(folder.id)

    test_client.patch(f"/folders/{folder.id}", json={"is_active": False})
    assert not ctx.watchers.is_watching(folder.id)


def test_reprocess_existing_via_api(test_client, ctx, local_folder, watch_dir, make_pdf):
    make_pdf(watch_dir, "invoice1.pdf")
    ctx.scanner.scan(local_folder)
    record = ctx.store.find_file_by_name(local_folder.id, "invoice1.pdf")

    response = test_client.post(f"/files/{record.id}/reprocess")
    assert response.status_code == 200
    new_id = response.json()["file"]["id"]

    assert ctx.queue.join(timeout=5)

    detail = test_client.get(f"/files/{new_id}").json()
    assert detail["status"] == "completed"
    assert detail["new_filename"] == "Acme_Invoice.pdf"
    assert [log["action"] for log in detail["logs"]][0] == "PROCESS_EXISTING"

    conflict = test_client.patch(f"/files/{new_id}", json={"new_filename": "Acme_Invoice"})
    assert conflict.status_code == 409


def test_dashboard_summary(test_client, ctx, local_folder, watch_dir, make_pdf):
    make_pdf(watch_dir, "a.pdf")
    ctx.scanner.scan(local_folder)

    summary = test_client.get("/api/dashboard/summary").json()

    assert summary["total"] == 1
    assert summary["existing"] == 1
    assert summary["queue_length"] == 0


def test_pipeline_status_and_logs(test_client, ctx, local_folder, watch_dir, make_pdf):
    make_pdf(watch_dir, "a.pdf")
    ctx.scanner.scan(local_folder)

    status = test_client.get("/pipeline/status").json()
    assert status["running"] is False
    assert status["queue"]["queue_length"] == 0

    logs = test_client.get("/api/logs").json()["logs"]
    assert logs[0]["action"] == "SCAN"


def test_recover_endpoint(test_client):
    response = test_client.post("/pipeline/recover")
    assert response.status_code == 200
    assert response.json()["result"] == {"reset": 0, "requeued": 0, "skipped": 0}


def test_smb_test_requires_host_and_share(test_client):
    assert test_client.post("/smb/test", json={}).status_code == 400

    web_ui = test_client.post("/smb/test", json={"url": "https://nas.example.com:5001"}).json()
    assert web_ui["success"] is False


def test_smb_test_uses_session_provider(test_client, share_provider, tmp_path):
    share_provider.roots[("nas", "FAX3")] = str(tmp_path)
    (tmp_path / "fax.pdf").write_bytes(b"x")

    result = test_client.post("/smb/test", json={"url": "\\\\nas\\FAX3"}).json()

    assert result["success"] is True
    assert result["files"] == ["fax.pdf"]
    connections = test_client.get("/smb/status").json()["connections"]
    assert connections[0]["is_connected"] is True


def test_llm_settings_reject_unknown_provider(test_client):
    assert test_client.get("/settings/llm").json()["provider"]
    response = test_client.put("/settings/llm", json={"provider": "unknown", "model": "x"})
    assert response.status_code == 400
