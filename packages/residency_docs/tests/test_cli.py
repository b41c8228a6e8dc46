"""
Tests for the ssw command line.
"""

import pytest
from rich.console import Console
from typer.testing import CliRunner

from basecore.settings import Settings
from residency_docs.bootstrap import build_application
from residency_docs.cli import main as cli_main

runner = CliRunner()


@pytest.fixture
def fake_app(monkeypatch, fake_redis):
    """Route every command to a stub backend persisted in the fake Redis."""

    def build(notifier=None):
        return build_application(
            settings=Settings(RESIDENCY_BACKEND="stub", SSW_ENCRYPTION_KEY=None),
            notifier=notifier,
            redis_client=fake_redis,
        )

    monkeypatch.setattr(cli_main, "build_application", build)
    monkeypatch.setattr(cli_main, "setup_logging", lambda **kwargs: None)
    monkeypatch.setattr(cli_main, "console", Console(width=200))
    return fake_redis


def invoke(*args, input=None):
    return runner.invoke(cli_main.app, list(args), input=input)


def login():
    result = invoke("login", "--email", "admin@example.com", "--password", "password123")
    assert result.exit_code == 0, result.output
    return result


class TestSessionCommands:
    def test_login_and_whoami(self, fake_app):
        result = login()
        assert "Logged in as admin@example.com" in result.output
        assert "session:user" in fake_app.data

        result = invoke("whoami")
        assert result.exit_code == 0
        assert "管理者" in result.output
        assert "admin" in result.output

    def test_login_failure(self, fake_app):
        result = invoke("login", "--email", "admin@example.com", "--password", "wrong")

        assert result.exit_code == 1
        assert "session:user" not in fake_app.data

    def test_commands_require_login(self, fake_app):
        result = invoke("list-foreigners")

        assert result.exit_code == 1
        assert "ログインしていません" in result.output

    def test_logout_forgets_session(self, fake_app):
        login()
        result = invoke("logout")

        assert result.exit_code == 0
        assert "session:user" not in fake_app.data
        assert invoke("whoami").exit_code == 1


class TestDataCommands:
    """Tests for commands that read and change residency data."""

    def test_list_foreigners(self, fake_app):
        login()
        result = invoke("list-foreigners")

        assert result.exit_code == 0
        assert "f1" in result.output

    def test_created_document_survives_restart(self, fake_app):
        login()
        result = invoke(
            "create-document",
            "--type",
            "resignation_report",
            "--title",
            "Resignation",
            "--foreigner",
            "f2",
            "--deadline",
            "2024-03-31",
        )
        assert result.exit_code == 0, result.output

        result = invoke("list-documents", "--foreigner", "f2")
        assert "Resignation" in result.output

    def test_delete_referenced_foreigner_fails(self, fake_app):
        login()
        result = invoke("delete-foreigner", "f1", "--yes")

        assert result.exit_code == 1

        result = invoke("list-foreigners")
        assert "f1" in result.output

    def test_set_document_status(self, fake_app):
        login()
        result = invoke("set-document-status", "d3", "submitted")

        assert result.exit_code == 0, result.output
        assert "申請中" in result.output

    def test_unknown_status_rejected(self, fake_app):
        result = invoke("set-document-status", "d3", "finished")
        assert result.exit_code == 1

    def test_update_without_options(self, fake_app):
        result = invoke("update-foreigner", "f1")

        assert result.exit_code == 0
        assert "Nothing to update" in result.output

    def test_add_activity(self, fake_app):
        login()
        result = invoke("add-activity", "hello")

        assert result.exit_code == 0, result.output
        assert "Recorded activity" in result.output

    def test_dashboard(self, fake_app):
        login()
        result = invoke("dashboard")

        assert result.exit_code == 0, result.output
        assert "定期届出" in result.output
        assert "在留期間更新" in result.output


class TestResetDemo:
    def test_clears_persisted_state(self, fake_app):
        login()
        assert "ssw:app-state" in fake_app.data

        result = invoke("reset-demo")

        assert result.exit_code == 0
        assert "ssw:app-state" not in fake_app.data
