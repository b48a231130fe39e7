import json

import pytest
from typer.testing import CliRunner

from src.thumbnails.audit import AuditStore
from src.thumbnails.cli import app
from src.thumbnails.models import ApprovalDecision
from tests.thumbnails.factories import IMAGE_URL, make_result

runner = CliRunner()


@pytest.fixture
def env(tmp_path, monkeypatch):
    monkeypatch.setenv("CM_REGION", "westus")
    monkeypatch.setenv("CM_SUBSCRIPTION_KEY", "key")
    monkeypatch.setenv("THUMBNAIL_WIDTH", "120")
    monkeypatch.setenv("STORAGE_ROOT", str(tmp_path / "blobs"))
    return tmp_path


def test_handle_unsupported_event(env):
    event_file = env / "event.json"
    event_file.write_text(json.dumps([{
        "eventType": "Microsoft.Storage.BlobCreated",
        "data": {"url": "https://account.blob.core.windows.net/images/icon.bmp"},
    }]))

    result = runner.invoke(app, ["handle", str(event_file)])

    assert result.exit_code == 0
    assert "Skipped" in result.output


def test_handle_invalid_json(env):
    event_file = env / "event.json"
    event_file.write_text("{not json")

    result = runner.invoke(app, ["handle", str(event_file)])

    assert result.exit_code == 1


def test_missing_configuration(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for var in ("CM_REGION", "CM_ENDPOINT", "CM_SUBSCRIPTION_KEY", "THUMBNAIL_WIDTH"):
        monkeypatch.delenv(var, raising=False)

    result = runner.invoke(app, ["audit", IMAGE_URL])

    assert result.exit_code == 1
    assert "Configuration error" in result.output


def test_audit_table(env):
    store = AuditStore(env / "blobs" / "checked-images" / "moderation_audit.db")
    store.record(ApprovalDecision(approved=False, result=make_result(adult=0.8), reasons=["too adult"]))

    result = runner.invoke(app, ["audit", IMAGE_URL])

    assert result.exit_code == 0
    assert "REJECTED" in result.output
    assert "0.800" in result.output


def test_audit_unknown_image(env):
    result = runner.invoke(app, ["audit", "https://account.blob.core.windows.net/images/none.png"])
    assert result.exit_code == 1
