"""Tests for the command-line interface."""

import json
from pathlib import Path

import pytest

from pf_ledger.cli import main


@pytest.fixture(autouse=True)
def isolated(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Run every command in an empty directory with no user config."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.delenv("LOG_DIR", raising=False)


@pytest.fixture
def ledger_path(tmp_path: Path) -> Path:
    return tmp_path / "ledger.csv"


def _import(ledger_path: Path, *files: Path) -> int:
    return main(["--ledger", str(ledger_path), "import", *(str(f) for f in files)])


class TestImportCommand:
    """Tests for the import command."""

    def test_import(
        self, ledger_path: Path, generic_csv_file: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert _import(ledger_path, generic_csv_file) == 0

        err = capsys.readouterr().err
        assert "Found 4 transactions" in err
        assert "Added: 3" in err
        assert "Not added (needs review): 1" in err
        assert len(ledger_path.read_text(encoding="utf-8").splitlines()) == 4

    def test_reimport_skips_duplicates(
        self, ledger_path: Path, generic_csv_file: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        _import(ledger_path, generic_csv_file)
        capsys.readouterr()

        assert _import(ledger_path, generic_csv_file) == 0

        err = capsys.readouterr().err
        assert "Duplicates: 3" in err
        assert "Added: 0" in err
        assert len(ledger_path.read_text(encoding="utf-8").splitlines()) == 4

    def test_dry_run(self, ledger_path: Path, generic_csv_file: Path) -> None:
        code = main(["--ledger", str(ledger_path), "import", str(generic_csv_file), "--dry-run"])

        assert code == 0
        assert not ledger_path.exists()

    def test_directory_input(
        self, tmp_path: Path, ledger_path: Path, generic_csv_file: Path, yandex_pdf_file: Path
    ) -> None:
        inbox = tmp_path / "inbox"
        inbox.mkdir()
        (inbox / "a.csv").write_bytes(generic_csv_file.read_bytes())
        (inbox / "b.txt").write_bytes(yandex_pdf_file.read_bytes())
        (inbox / "ignored.md").write_text("notes")

        code = main(["--ledger", str(ledger_path), "import", str(inbox), "--account", "Основной"])

        assert code == 0
        assert len(ledger_path.read_text(encoding="utf-8").splitlines()) == 1 + 3 + 3

    def test_all_files_failed(
        self, tmp_path: Path, ledger_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        bad_file = tmp_path / "notes.txt"
        bad_file.write_text("nothing to see", encoding="utf-8")

        assert _import(ledger_path, bad_file) == 1
        assert "notes.txt" in capsys.readouterr().err
        assert not ledger_path.exists()

    def test_missing_input(self, ledger_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert _import(ledger_path, Path("missing.csv")) == 1
        assert "No valid input files" in capsys.readouterr().err


class TestExportCommand:
    """Tests for the export command."""

    def test_csv_to_stdout(
        self, ledger_path: Path, generic_csv_file: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        _import(ledger_path, generic_csv_file)
        capsys.readouterr()

        assert main(["--ledger", str(ledger_path), "export"]) == 0

        lines = capsys.readouterr().out.splitlines()
        assert lines[0].startswith("date;type;account")
        assert len(lines) == 4
        assert lines[2].startswith("16.01.2025;income;Карта;;50000")
        assert ";RUB;Зарплата;" in lines[2]

    def test_json_to_file(self, tmp_path: Path, ledger_path: Path, generic_csv_file: Path) -> None:
        _import(ledger_path, generic_csv_file)
        output = tmp_path / "out.json"

        code = main(["--ledger", str(ledger_path), "export", "--format", "json", "-o", str(output)])

        assert code == 0
        data = json.loads(output.read_text(encoding="utf-8"))
        assert [row["source_id"] for row in data] == ["op-1", "op-2", "op-3"]
        assert data[0]["category"] == "Продукты"

    def test_missing_config(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        code = main(["--config", str(tmp_path / "missing.json"), "export"])

        assert code == 1
        assert capsys.readouterr().err.startswith("Error:")


class TestArchiveCommands:
    """Tests for the archive and restore commands."""

    def test_archive_and_restore(
        self, ledger_path: Path, generic_csv_file: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        _import(ledger_path, generic_csv_file)
        capsys.readouterr()

        assert main(["--ledger", str(ledger_path), "archive", "--before", "17.01.2025", "--dry-run"]) == 0
        assert "Would archive 2" in capsys.readouterr().err
        assert not (ledger_path.parent / "ledger.archive.csv").exists()

        assert main(["--ledger", str(ledger_path), "archive", "--before", "17.01.2025"]) == 0
        assert "Archived 2" in capsys.readouterr().err
        assert (ledger_path.parent / "ledger.archive.csv").exists()

        assert main(["--ledger", str(ledger_path), "restore", "--from", "2025-01-16"]) == 0
        assert "Restored 1" in capsys.readouterr().err

        main(["--ledger", str(ledger_path), "export", "--format", "json"])
        data = json.loads(capsys.readouterr().out)
        assert [row["source_id"] for row in data] == ["op-3", "op-2"]

    def test_invalid_date(self, ledger_path: Path) -> None:
        with pytest.raises(SystemExit):
            main(["--ledger", str(ledger_path), "archive", "--before", "yesterday"])


class TestConfigDrivenCommands:
    """Tests for commands that read budgets and recurring templates from config."""

    @pytest.fixture
    def config_path(self, tmp_path: Path) -> Path:
        config = {
            "budgets": [
                {"category": "Продукты", "period": "month", "period_value": "2025-01", "amount": 2000},
            ],
            "recurring": [
                {
                    "name": "Аренда",
                    "frequency": "monthly",
                    "start_date": "2025-01-05",
                    "account": "Карта",
                    "amount": 30000,
                    "category": "Жильё",
                },
            ],
        }
        path = tmp_path / "config.json"
        path.write_text(json.dumps(config, ensure_ascii=False), encoding="utf-8")
        return path

    def test_budgets(
        self,
        config_path: Path,
        ledger_path: Path,
        generic_csv_file: Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        _import(ledger_path, generic_csv_file)
        capsys.readouterr()

        code = main(["--config", str(config_path), "--ledger", str(ledger_path), "budgets"])

        assert code == 0
        out = capsys.readouterr().out
        assert "Продукты" in out
        assert "75.00%" in out
        assert out.rstrip().endswith("ok")

    def test_recurring(
        self, config_path: Path, ledger_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        args = ["--config", str(config_path), "--ledger", str(ledger_path), "recurring", "--as-of", "10.02.2025"]

        assert main(args) == 0
        assert "Created: 1" in capsys.readouterr().err
        assert "05.02.2025;expense;Карта;;30000" in ledger_path.read_text(encoding="utf-8")
        saved = json.loads(config_path.read_text(encoding="utf-8"))
        assert saved["recurring"][0]["last_created"] == "2025-02-05"

        # Already created this month
        assert main(args) == 0
        assert "Created: 0" in capsys.readouterr().err

    def test_recurring_dry_run(self, config_path: Path, ledger_path: Path) -> None:
        code = main([
            "--config", str(config_path), "--ledger", str(ledger_path),
            "recurring", "--as-of", "10.02.2025", "--dry-run",
        ])

        assert code == 0
        assert not ledger_path.exists()
        assert "last_created" not in config_path.read_text(encoding="utf-8")


class TestMiscCommands:
    """Tests for list-parsers, init-config and the bare invocation."""

    def test_list_parsers(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["list-parsers"]) == 0

        out = capsys.readouterr().out
        assert out.startswith("Available parsers:")
        for name in ("Sberbank", "Yandex", "Raw sheet", "CSV"):
            assert name in out

    def test_init_config(self, tmp_path: Path) -> None:
        config_path = tmp_path / "conf" / "config.json"

        assert main(["--config", str(config_path), "init-config", "--with-rules"]) == 0
        config = json.loads(config_path.read_text(encoding="utf-8"))
        assert config["category_rules"]
        assert config["budgets"] == []

        assert main(["--config", str(config_path), "init-config"]) == 1
        assert main(["--config", str(config_path), "init-config", "--force"]) == 0
        assert json.loads(config_path.read_text(encoding="utf-8"))["category_rules"] == []

    def test_init_config_default_location(self, tmp_path: Path) -> None:
        assert main(["init-config"]) == 0
        assert (tmp_path / "xdg" / "pf-ledger" / "config.json").exists()

    def test_no_command(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main([]) == 1
        assert "usage:" in capsys.readouterr().out
