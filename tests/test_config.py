"""Tests for configuration management."""

import json
from pathlib import Path

import pytest

from pf_ledger.config import (
    build_import_options,
    create_default_config,
    find_config_file,
    get_account_mappings,
    get_account_name,
    get_ledger_path,
    load_config,
    save_json_config,
)


class TestFindConfigFile:
    """Tests for find_config_file function."""

    def test_finds_config_in_current_dir(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test finding config.json in current directory."""
        monkeypatch.chdir(tmp_path)
        config_file = tmp_path / "config.json"
        config_file.write_text('{"accounts": []}')

        result = find_config_file()

        assert result is not None
        assert result.resolve() == config_file.resolve()

    def test_finds_config_in_xdg_dir(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test finding config in XDG config directory."""
        monkeypatch.chdir(tmp_path)
        xdg_config = tmp_path / "xdg_config"
        xdg_config.mkdir()
        monkeypatch.setenv("XDG_CONFIG_HOME", str(xdg_config))

        config_dir = xdg_config / "pf-ledger"
        config_dir.mkdir()
        config_file = config_dir / "config.json"
        config_file.write_text('{"accounts": []}')

        result = find_config_file()

        assert result == config_file

    def test_current_dir_takes_precedence(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test current directory config takes precedence over XDG."""
        monkeypatch.chdir(tmp_path)

        xdg_config = tmp_path / "xdg_config"
        config_dir = xdg_config / "pf-ledger"
        config_dir.mkdir(parents=True)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(xdg_config))
        (config_dir / "config.json").write_text('{"accounts": []}')

        cwd_config = tmp_path / "config.json"
        cwd_config.write_text('{"accounts": []}')

        result = find_config_file()

        assert result is not None
        assert result.resolve() == cwd_config.resolve()

    def test_returns_none_when_no_config(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test returns None when no config file exists."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "empty_xdg"))

        assert find_config_file() is None


class TestLoadConfig:
    """Tests for load_config function."""

    def test_loads_explicit_path(self, tmp_path: Path) -> None:
        """Test loading from explicit path."""
        config_file = tmp_path / "config.json"
        config_data = {"accounts": [{"card_number": "7426", "name": "Сбер Visa", "bank": "Sberbank"}]}
        config_file.write_text(json.dumps(config_data, ensure_ascii=False), encoding="utf-8")

        assert load_config(config_file) == config_data

    def test_returns_none_when_no_config(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "empty"))

        assert load_config() is None

    def test_invalid_json(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.json"
        config_file.write_text("{not json")

        with pytest.raises(ValueError):
            load_config(config_file)


class TestSaveJsonConfig:
    """Tests for save_json_config function."""

    def test_saves_to_explicit_path(self, tmp_path: Path) -> None:
        """Test saving keeps non-ASCII text readable."""
        config_file = tmp_path / "config.json"
        config_data = {"default_account": "Наличные"}

        result = save_json_config(config_data, config_file)

        assert result == config_file
        assert "Наличные" in config_file.read_text(encoding="utf-8")
        assert json.loads(config_file.read_text(encoding="utf-8")) == config_data

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        config_file = tmp_path / "subdir" / "config.json"

        save_json_config({"accounts": []}, config_file)

        assert config_file.exists()

    def test_defaults_to_xdg_path(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))

        result = save_json_config({"accounts": []})

        assert result == tmp_path / "pf-ledger" / "config.json"


class TestGetAccountMappings:
    """Tests for get_account_mappings function."""

    def test_returns_empty_list_without_accounts(self) -> None:
        assert get_account_mappings(None) == []
        assert get_account_mappings({"budgets": []}) == []

    def test_parses_mappings(self) -> None:
        config = {
            "accounts": [
                {"card_number": "4276 **** **** 7426", "name": "Сбер Visa", "bank": "Sberbank"},
                {"card_number": "40817", "name": "Вклад", "bank": "Sberbank", "type": "deposit"},
            ]
        }

        mappings = get_account_mappings(config)

        assert len(mappings) == 2
        assert mappings[0].name == "Сбер Visa"
        assert mappings[0].account_type == "card"
        assert mappings[1].account_type == "deposit"


class TestGetAccountName:
    """Tests for get_account_name function."""

    def test_matches_last_four_digits(self) -> None:
        """Test a masked card number matches the configured card."""
        config = {"accounts": [{"card_number": "4276 **** **** 7426", "name": "Сбер Visa"}]}

        assert get_account_name("****7426", config=config) == "Сбер Visa"

    def test_returns_none_when_not_matched(self) -> None:
        config = {"accounts": [{"card_number": "9999", "name": "Другая карта"}]}

        assert get_account_name("7426", config=config) is None
        assert get_account_name("7426", config=None) is None


class TestGetLedgerPath:
    """Tests for get_ledger_path function."""

    def test_override_wins(self, tmp_path: Path) -> None:
        override = tmp_path / "other.csv"
        assert get_ledger_path({"ledger_path": "x.csv"}, override) == override

    def test_from_config(self) -> None:
        assert get_ledger_path({"ledger_path": "data/ledger.csv"}) == Path("data/ledger.csv")

    def test_default(self) -> None:
        assert get_ledger_path(None) == Path("ledger.csv")


class TestBuildImportOptions:
    """Tests for build_import_options function."""

    def test_from_config(self) -> None:
        config = {
            "default_account": "Наличные",
            "default_currency": "USD",
            "accounts": [{"card_number": "7088", "name": "Яндекс Карта"}],
        }

        options = build_import_options(config)

        assert options.default_account == "Наличные"
        assert options.default_currency == "USD"
        assert len(options.account_mappings) == 1

    def test_overrides(self) -> None:
        """Test None overrides keep the config value."""
        options = build_import_options(
            {"default_account": "Наличные"}, default_account=None, source="import:manual"
        )

        assert options.default_account == "Наличные"
        assert options.source == "import:manual"
        assert options.default_currency == "RUB"


class TestCreateDefaultConfig:
    """Tests for create_default_config function."""

    def test_creates_valid_structure(self) -> None:
        config = create_default_config()

        assert config["default_currency"] == "RUB"
        assert config["ledger_path"] == "ledger.csv"
        for key in ("accounts", "category_rules", "budgets", "recurring"):
            assert config[key] == []
