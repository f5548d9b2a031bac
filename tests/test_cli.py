"""
CLI tests: commands run end to end against a temporary JSON store; the
provider call is replaced so nothing leaves the process.
"""

import json

import pytest

from projectmind import cli
from projectmind.config import settings as config_settings
from projectmind.core.ai.base import AIResponse
from projectmind.core.ai.errors import Unreachable
from projectmind.core.ai.router import ProviderRouter
from projectmind.services.config_service import CONFIG_ENV_VAR, HOSTED_API_KEY_ENV_VAR


@pytest.fixture
def run(tmp_path, capsys, monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.delenv(HOSTED_API_KEY_ENV_VAR, raising=False)
    monkeypatch.setattr(config_settings, "_config_service", None)
    base = ["--config", str(tmp_path / "config.json"), "--store", str(tmp_path / "store.json")]

    def _run(*argv):
        code = cli.main(base + list(argv))
        return code, json.loads(capsys.readouterr().out)

    return _run


@pytest.fixture
def demo(run):
    code, out = run("demo-data")
    assert code == 0
    return out


def reply_with(monkeypatch, content):
    async def fake_generate(self, settings, messages):
        if isinstance(content, Exception):
            raise content
        return AIResponse(content=content, model="cli-model", provider=settings.provider)

    monkeypatch.setattr(ProviderRouter, "generate", fake_generate)


def test_demo_data_seeds_users_and_projects(demo):
    assert [u["email"] for u in demo["users"]] == [
        "admin@example.com", "manager@example.com", "user@example.com",
    ]
    assert len(demo["projects"]) == 2


def test_settings_show_and_set(run, demo):
    code, out = run("--user", "user@example.com", "settings", "show")
    assert code == 0
    assert out["settings"]["provider"] == "Z_AI"
    assert out["settings"]["hasApiKey"] is False
    assert "LM_STUDIO" in out["providers"]
    assert len(out["providers"]) == 5

    code, out = run(
        "--user", "user@example.com", "settings", "set",
        "provider=LM_STUDIO", "baseUrl=http://localhost:1234", "maxTokens=500",
    )
    assert code == 0
    assert out["settings"]["provider"] == "LM_STUDIO"
    assert out["settings"]["maxTokens"] == 500

    code, out = run("--user", "user@example.com", "settings", "set", "maxTokens=0")
    assert code == 1
    assert out["error"] == "ValidationError"
    assert "max_tokens" in out["details"]


def test_chat_creates_task_and_shows_in_history(run, demo, monkeypatch):
    project_id = demo["projects"][0]["id"]
    reply_with(monkeypatch, 'On it.\n{"title": "Release notes", "description": "Write them"}')

    code, out = run("--user", "user@example.com", "chat", "Plan the release", "--project", project_id)

    assert code == 0
    assert out["actionResult"]["success"] is True
    assert out["actionResult"]["task"]["projectId"] == project_id
    assert out["model"] == "cli-model"
    chat_id = out["chatId"]

    code, out = run("--user", "user@example.com", "chats", "list")
    assert [c["id"] for c in out["chats"]] == [chat_id]
    assert out["chats"][0]["title"] == "Plan the release"
    assert out["chats"][0]["messageCount"] == 3

    code, out = run("--user", "user@example.com", "chats", "delete", chat_id)
    assert code == 0
    code, out = run("--user", "user@example.com", "chats", "show", chat_id)
    assert code == 1
    assert out["error"] == "NotFoundError"


def test_chat_provider_failure_still_succeeds_with_error_block(run, demo, monkeypatch):
    reply_with(monkeypatch, Unreachable("connection refused"))

    code, out = run("--user", "user@example.com", "chat", "Hello")

    assert code == 0
    assert out["error"]["type"] == "Unreachable"


def test_create_task_command(run, demo, monkeypatch):
    project_id = demo["projects"][1]["id"]
    reply_with(monkeypatch, '{"title": "App icon", "description": "Design the icon", "priority": "LOW"}')

    code, out = run("--user", "manager@example.com", "create-task", project_id, "We need an icon")

    assert code == 0
    assert out["message"] == "Task created successfully"
    assert out["task"]["priority"] == "LOW"


def test_unknown_user_is_rejected(run, demo):
    code, out = run("--user", "nobody@example.com", "settings", "show")
    assert code == 1
    assert out["error"] == "AuthorizationError"


def test_missing_user_is_a_validation_error(run):
    code, out = run("settings", "show")
    assert code == 1
    assert out["error"] == "ValidationError"


def test_corrupt_config_is_reported(tmp_path, capsys, monkeypatch):
    monkeypatch.setattr(config_settings, "_config_service", None)
    path = tmp_path / "config.json"
    path.write_text("{oops")

    code = cli.main(["--config", str(path), "demo-data"])

    assert code == 1
    assert json.loads(capsys.readouterr().out)["error"] == "ConfigurationError"


def test_analyze_command_falls_back_without_provider(run, demo, monkeypatch):
    project_id = demo["projects"][0]["id"]
    reply_with(monkeypatch, Unreachable("connection refused"))

    code, out = run("--user", "user@example.com", "analyze", project_id)

    assert code == 0
    assert out["success"] is True
    assert out["analysis"]["progress"] == 0
    assert out["projectData"]["membersCount"] == 3
    assert out["warning"]


def test_report_command(run, demo, monkeypatch):
    reply_with(monkeypatch, '{"title": "Monthly", "summary": "Quiet month"}')

    code, out = run("--user", "manager@example.com", "report", "--type", "team")

    assert code == 0
    assert out["report"]["title"] == "Monthly"
    assert out["metadata"]["type"] == "team"
    assert out["metadata"]["period"] == "month"

    code, out = run("--user", "manager@example.com", "report", "--project", "missing")
    assert code == 1
    assert out["error"] == "AuthorizationError"
