"""Tests for settings loaded from the environment and .env."""

import pytest

from budgetbuddy.config import (
    GeminiSettings,
    GoogleSheetsSettings,
    LedgerSettings,
    MonthMatching,
    StorageBackend,
)


ENV_FILE = """\
GEMINI_API_KEY=abc
GEMINI_TIMEOUT_SECONDS=5
GOOGLE_SHEETS_CREDENTIALS_PATH=credentials.json
GOOGLE_SHEETS_SPREADSHEET_ID=sheet-123
LEDGER_MONTH_MATCHING=month_and_year
LEDGER_STORAGE_BACKEND=memory
"""

ENV_VARS = [
    "GEMINI_API_KEY",
    "GEMINI_TIMEOUT_SECONDS",
    "GOOGLE_SHEETS_CREDENTIALS_PATH",
    "GOOGLE_SHEETS_SPREADSHEET_ID",
    "LEDGER_MONTH_MATCHING",
    "LEDGER_STORAGE_BACKEND",
]


@pytest.fixture
def env_dir(tmp_path, monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    (tmp_path / ".env").write_text(ENV_FILE, encoding="utf-8")
    (tmp_path / "credentials.json").write_text("{}", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    return tmp_path


class TestDotEnv:
    """Tests that every settings class reads .env."""

    def test_gemini(self, env_dir):
        """Test Gemini settings from .env."""
        settings = GeminiSettings()
        assert settings.api_key == "abc"
        assert settings.timeout_seconds == 5.0

    def test_google_sheets(self, env_dir):
        """Test Google Sheets settings from .env."""
        settings = GoogleSheetsSettings()
        assert settings.spreadsheet_id == "sheet-123"
        assert settings.credentials_path == "credentials.json"

    def test_ledger(self, env_dir):
        """Test ledger settings from .env."""
        settings = LedgerSettings()
        assert settings.month_matching is MonthMatching.MONTH_AND_YEAR
        assert settings.storage_backend is StorageBackend.MEMORY

    def test_environment_wins_over_file(self, env_dir, monkeypatch):
        """Test that a real environment variable overrides .env."""
        monkeypatch.setenv("GEMINI_API_KEY", "from-env")
        assert GeminiSettings().api_key == "from-env"


class TestDefaults:
    """Tests for values that have defaults."""

    def test_ledger_defaults(self, tmp_path, monkeypatch):
        """Test the ledger defaults with no .env."""
        for name in ENV_VARS:
            monkeypatch.delenv(name, raising=False)
        monkeypatch.chdir(tmp_path)
        settings = LedgerSettings()
        assert settings.month_matching is MonthMatching.MONTH_ONLY
        assert settings.insight_transaction_count == 10
