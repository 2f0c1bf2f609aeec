"""Unit tests for CLI functionality."""

import importlib
import json
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner
from rich.console import Console

cli_main = importlib.import_module("jarvisrouter.cli.main")
from jarvisrouter.cli import priority as cli_priority
from jarvisrouter.cli.main import cli
from jarvisrouter.config.providers import BUILTIN_PROVIDERS
from jarvisrouter.llm.exceptions import AllProvidersExhaustedError, ErrorKind, NoProviderAvailableError, ProviderError
from jarvisrouter.llm.fallback_chain import FallbackOrchestrator
from jarvisrouter.llm.models import GenerationResult, TokenUsage
from jarvisrouter.llm.priority_store import PriorityStore

pytestmark = pytest.mark.usefixtures("restore_root_logger")

PROVIDER_ENV = ("GROQ_API_KEY", "GEMINI_API_KEY", "GITHUB_TOKEN", "OPENROUTER_API_KEY")


@pytest.fixture(autouse=True)
def cli_environment(monkeypatch, tmp_path):
    """Run every command from an empty directory with no provider credentials."""
    for name in PROVIDER_ENV + ("PRIORITY_FILE", "JARVIS_MAX_ATTEMPTS"):
        monkeypatch.delenv(name, raising=False)
    # Keep log records out of the captured command output
    monkeypatch.setenv("LOG_LEVEL", "CRITICAL")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli_main, "console", Console(width=200))
    monkeypatch.setattr(cli_priority, "console", Console(width=200))


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def seeded_priority(tmp_path):
    path = tmp_path / "priority.json"
    PriorityStore.initialize(path, BUILTIN_PROVIDERS.values())
    return path


def sample_result(**overrides):
    data = dict(
        response="Hello from Groq",
        provider="Groq",
        provider_id="groq",
        model="llama-3.1-8b-instant",
        fallback_used=True,
        total_attempts=2,
        usage=TokenUsage(prompt_tokens=5, completion_tokens=4, total_tokens=9),
        response_time_ms=42.0,
    )
    data.update(overrides)
    return GenerationResult(**data)


class TestCLI:
    """Test cases for CLI interface."""

    def test_cli_version(self, runner):
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "JARVIS Router" in result.output

    def test_cli_help(self, runner):
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "priority-based AI provider routing" in result.output
        for command in ("chat", "status", "test", "credentials", "priority"):
            assert command in result.output


class TestChatCommand:
    """Test cases for the chat command."""

    def test_chat_prints_response(self, runner, seeded_priority):
        with patch.object(FallbackOrchestrator, "generate_response", new=AsyncMock(return_value=sample_result())):
            result = runner.invoke(cli, ["chat", "Hello"])

        assert result.exit_code == 0
        assert "Hello from Groq" in result.output
        assert "fallback used" in result.output

    def test_chat_json_output(self, runner, seeded_priority):
        mock_generate = AsyncMock(return_value=sample_result())
        with patch.object(FallbackOrchestrator, "generate_response", new=mock_generate):
            result = runner.invoke(cli, ["chat", "Hello", "--temperature", "0.2", "--max-tokens", "50", "--json"])

        assert result.exit_code == 0
        payload = json.loads(result.output)
        assert payload["providerId"] == "groq"
        assert payload["fallbackUsed"] is True
        assert payload["totalAttempts"] == 2
        assert payload["usage"]["total_tokens"] == 9
        mock_generate.assert_awaited_once_with("Hello", temperature=0.2, max_tokens=50)

    def test_chat_no_provider_available(self, runner, seeded_priority):
        result = runner.invoke(cli, ["chat", "Hello"])

        assert result.exit_code == 1
        payload = json.loads(result.output)
        assert payload["errorKind"] == "UNAVAILABLE"
        assert payload["httpStatusHint"] == 503

    def test_chat_all_providers_failed(self, runner, seeded_priority):
        error = AllProvidersExhaustedError(
            ProviderError("Rate limit exceeded for Groq.", provider_id="groq", kind=ErrorKind.RATE_LIMIT),
            total_attempts=3,
        )
        with patch.object(FallbackOrchestrator, "generate_response", new=AsyncMock(side_effect=error)):
            result = runner.invoke(cli, ["chat", "Hello"])

        assert result.exit_code == 1
        payload = json.loads(result.output)
        assert payload["errorKind"] == "RATE_LIMIT"
        assert payload["httpStatusHint"] == 429

    def test_chat_rejects_empty_message(self, runner, seeded_priority, monkeypatch):
        monkeypatch.setenv("GROQ_API_KEY", "gsk_0123456789abcdef")

        result = runner.invoke(cli, ["chat", "   "])

        assert result.exit_code == 1
        payload = json.loads(result.output)
        assert payload["errorKind"] == "VALIDATION"
        assert payload["httpStatusHint"] == 400

    def test_chat_rejects_nan_temperature(self, runner, seeded_priority, monkeypatch):
        monkeypatch.setenv("GROQ_API_KEY", "gsk_0123456789abcdef")

        result = runner.invoke(cli, ["chat", "Hello", "--temperature", "nan"])

        assert result.exit_code == 1
        payload = json.loads(result.output)
        assert payload["errorKind"] == "VALIDATION"
        assert payload["httpStatusHint"] == 400

    def test_chat_without_priority_file(self, runner):
        result = runner.invoke(cli, ["chat", "Hello"])

        assert result.exit_code == 1
        payload = json.loads(result.output)
        assert payload["errorKind"] == "CONFIG"
        assert "priority init" in payload["message"]


class TestStatusCommands:
    """Test cases for status, test and credentials commands."""

    def test_status(self, runner, seeded_priority, monkeypatch):
        monkeypatch.setenv("GROQ_API_KEY", "gsk_0123456789abcdef")

        result = runner.invoke(cli, ["status"])

        assert result.exit_code == 0
        assert "AI Services" in result.output
        assert "Available: 1/4" in result.output
        assert "Current: Groq" in result.output

    def test_test_single_provider(self, runner, seeded_priority):
        outcome = {"success": True, "service": "groq", "provider": "Groq",
                   "model": "llama-3.1-8b-instant", "response": "Hi", "response_time_ms": 12.0}
        mock_test = AsyncMock(return_value=outcome)
        with patch.object(FallbackOrchestrator, "test_service", new=mock_test):
            result = runner.invoke(cli, ["test", "groq"])

        assert result.exit_code == 0
        assert "OK" in result.output
        mock_test.assert_awaited_once_with("groq")

    def test_test_all_failed(self, runner, seeded_priority):
        summary = {
            "total_services": 1,
            "available_services": 0,
            "results": [{"success": False, "service": "groq", "error": "Authentication failed for Groq."}],
        }
        with patch.object(FallbackOrchestrator, "test_all_services", new=AsyncMock(return_value=summary)):
            result = runner.invoke(cli, ["test"])

        assert result.exit_code == 1
        assert "FAILED" in result.output
        assert "Authentication failed for Groq." in result.output

    def test_test_without_available_services(self, runner, seeded_priority):
        result = runner.invoke(cli, ["test"])

        assert result.exit_code == 1
        assert "No available services" in result.output

    def test_credentials(self, runner, monkeypatch):
        monkeypatch.setenv("GROQ_API_KEY", "gsk_0123456789abcdef")
        monkeypatch.setenv("GEMINI_API_KEY", "your_gemini_key")

        result = runner.invoke(cli, ["credentials"])

        assert result.exit_code == 0
        assert "GROQ_API_KEY" in result.output
        assert "OK" in result.output
        assert "PLACEHOLDER" in result.output
        assert "MISSING" in result.output
        assert "gsk_0123456789abcdef" not in result.output


class TestPriorityCommands:
    """Test cases for priority management."""

    def test_init_and_list(self, runner, tmp_path):
        result = runner.invoke(cli, ["priority", "init"])

        assert result.exit_code == 0
        assert (tmp_path / "priority.json").exists()

        result = runner.invoke(cli, ["priority", "list"])
        assert result.exit_code == 0
        assert "gemini" in result.output
        assert "openrouter" in result.output

    def test_init_with_order(self, runner, tmp_path):
        result = runner.invoke(cli, ["--priority-file", "ranked.json", "priority", "init", "--order", "groq,github"])

        assert result.exit_code == 0
        store = PriorityStore(tmp_path / "ranked.json")
        assert store.ordered_enabled_provider_ids() == ["groq", "github", "gemini", "openrouter"]

    def test_init_refuses_overwrite(self, runner, seeded_priority):
        result = runner.invoke(cli, ["priority", "init"])
        assert result.exit_code == 1

        result = runner.invoke(cli, ["priority", "init", "--force"])
        assert result.exit_code == 0

    def test_set_enable_disable_model(self, runner, seeded_priority):
        assert runner.invoke(cli, ["priority", "set", "openrouter", "0"]).exit_code == 0
        assert runner.invoke(cli, ["priority", "disable", "gemini"]).exit_code == 0
        assert runner.invoke(cli, ["priority", "model", "groq", "llama-3.3-70b-versatile"]).exit_code == 0

        store = PriorityStore(seeded_priority)
        assert store.ordered_enabled_provider_ids() == ["openrouter", "groq", "github"]
        assert store.model_for("groq") == "llama-3.3-70b-versatile"

        assert runner.invoke(cli, ["priority", "enable", "gemini"]).exit_code == 0
        assert PriorityStore(seeded_priority).get_entry("gemini").enabled is True

    def test_set_negative_priority(self, runner, seeded_priority):
        result = runner.invoke(cli, ["priority", "set", "openrouter", "-1"])

        assert result.exit_code == 0
        store = PriorityStore(seeded_priority)
        assert store.get_entry("openrouter").priority == -1
        assert store.ordered_enabled_provider_ids()[0] == "openrouter"

    def test_unknown_provider(self, runner, seeded_priority):
        result = runner.invoke(cli, ["priority", "disable", "nope"])

        assert result.exit_code == 1
        payload = json.loads(result.output)
        assert payload["errorKind"] == "NOT_FOUND"
        assert payload["httpStatusHint"] == 404
