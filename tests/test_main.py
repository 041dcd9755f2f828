"""End-to-end tests for the command line interface with an in-memory store."""

import logging
import sys
from unittest.mock import patch

import pytest

from jobtracker import main as cli
from jobtracker.attachments import MAX_ATTACHMENT_BYTES
from jobtracker.auth import Session
from jobtracker.models import JobStatus


@pytest.fixture
def session():
    return Session(
        user_id="user-1",
        id_token="tok",
        refresh_token="r",
        expires_at="2099-01-01T00:00:00Z",
    )


@pytest.fixture
def run(config_file, store, session, tmp_path, monkeypatch):
    monkeypatch.setattr(cli, "LOCK_DIR", tmp_path)
    monkeypatch.setattr(cli, "setup_logging", lambda: None)

    def _run(*argv):
        with patch.object(cli, "require_session", return_value=session), patch.object(
            cli.FirestoreStore, "connect", return_value=store
        ):
            return cli.main(["--config", str(config_file), *argv])

    return _run


def seed(store, *apps):
    for app in apps:
        store.collections.setdefault("user-1", {})[app.id] = app


def test_add_and_list(run, store, capsys):
    assert run("add", "--company", "Acme Corp", "--role", "Engineer", "--date", "02/03/2024") == 0

    [app] = store.collections["user-1"].values()
    assert app.company == "Acme Corp"
    assert app.status is JobStatus.WAITING

    assert run("list") == 0
    out = capsys.readouterr().out
    assert "1 applications tracked" in out
    assert "Acme Corp" in out
    assert "02/03/2024" in out


def test_list_search_and_legacy_dates(run, store, make_app, capsys):
    seed(
        store,
        make_app("a1", company="Acme Corp", date_applied="2023-05-01"),
        make_app("a2", company="Globex"),
    )

    assert run("list", "--search", "acme") == 0

    out = capsys.readouterr().out
    assert "2 applications tracked" in out
    assert "01/05/2023" in out
    assert "Globex" not in out


def test_edit_by_id_prefix(run, store, make_app):
    seed(store, make_app("abcdef-1234"))

    assert run("edit", "abcdef", "--status", "Interviewing", "--notes", "Phone screen") == 0

    app = store.collections["user-1"]["abcdef-1234"]
    assert app.status is JobStatus.INTERVIEWING
    assert app.notes == "Phone screen"
    assert app.company == "Acme Corp"


def test_attach_and_remove_cv(run, store, make_app, tmp_path):
    seed(store, make_app("a1"))
    cv = tmp_path / "cv.pdf"
    cv.write_bytes(b"%PDF-1.7")

    assert run("edit", "a1", "--cv", str(cv)) == 0
    assert store.collections["user-1"]["a1"].cv_file_name == "cv.pdf"

    out_dir = tmp_path / "out"
    out_dir.mkdir()
    assert run("download-cv", "a1", "--output", str(out_dir)) == 0
    assert (out_dir / "cv.pdf").read_bytes() == b"%PDF-1.7"

    assert run("edit", "a1", "--remove-cv") == 0
    app = store.collections["user-1"]["a1"]
    assert app.cv_file_name is None
    assert app.cv_base64 is None


def test_oversized_cv_rejected(run, store, tmp_path, capsys):
    cv = tmp_path / "big.pdf"
    with open(cv, "wb") as f:
        f.truncate(MAX_ATTACHMENT_BYTES + 1)

    assert run("add", "--company", "Acme", "--role", "Engineer", "--cv", str(cv)) == 1
    assert "File is too large" in capsys.readouterr().err
    assert store.collections.get("user-1", {}) == {}


def test_delete_with_confirmation(run, store, make_app, monkeypatch):
    seed(store, make_app("a1"), make_app("a2"))

    monkeypatch.setattr("builtins.input", lambda prompt: "n")
    assert run("delete", "a1") == 0
    assert "a1" in store.collections["user-1"]

    assert run("delete", "a1", "--yes") == 0
    assert list(store.collections["user-1"]) == ["a2"]


def test_store_failure_reported(run, store, capsys):
    store.fail_on.add("create")

    assert run("add", "--company", "Acme", "--role", "Engineer") == 1
    assert "Failed to save application to database." in capsys.readouterr().err


def test_unknown_id(run, capsys):
    assert run("show", "nope") == 1
    assert "No application matches" in capsys.readouterr().err


def test_missing_config(tmp_path, capsys):
    assert cli.main(["--config", str(tmp_path / "missing.yaml"), "list"]) == 1
    assert "Configuration error" in capsys.readouterr().err


def test_logs_go_to_stderr_and_file(config_file, tmp_path, monkeypatch):
    monkeypatch.setattr(cli, "LOG_DIR", tmp_path / "logs")

    with patch.object(cli.logging, "basicConfig") as basic_config:
        cli.setup_logging()

    file_handler, stream_handler = basic_config.call_args.kwargs["handlers"]
    file_handler.close()
    assert file_handler.baseFilename == str(tmp_path / "logs" / "app.log")
    assert stream_handler.stream is sys.stderr
    assert basic_config.call_args.kwargs["level"] == logging.INFO
