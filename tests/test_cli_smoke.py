"""Smoke tests for the CLI entry point."""
from __future__ import annotations

import json

import pytest

from lead_importer import __main__
from lead_importer.cli import main

CSV_TEXT = (
    "email,first_name,city\n"
    "a@x.com,Joanna,Berlin\n"
    "jane@example.com,Jane,\n"
    "5551234567,Phone,\n"
)


def _write_inputs(tmp_path):
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps(
            {
                "import": {"default_strategy": "skip", "sample_limit": 5},
                "store": {
                    "class": "lead_importer.store.memory.InMemoryLeadStore",
                    "options": {"seed_rows": {"leads": [{"id": "1", "email": "a@x.com", "first_name": "Jo"}]}},
                },
            }
        ),
        encoding="utf-8",
    )
    input_path = tmp_path / "input.csv"
    input_path.write_text(CSV_TEXT, encoding="utf-8")
    return config_path, input_path


def test_cli_import_prints_summary(tmp_path, capsys: pytest.CaptureFixture[str]) -> None:
    config_path, input_path = _write_inputs(tmp_path)
    report_path = tmp_path / "report.csv"

    exit_code = main(
        [
            "import",
            str(input_path),
            "--config",
            str(config_path),
            "--strategy",
            "merge",
            "--report",
            str(report_path),
        ]
    )

    assert exit_code == 0
    summary = json.loads(capsys.readouterr().out)
    assert summary["inserted_count"] == 1
    assert summary["updated_count"] == 1
    assert summary["skipped_invalid_count"] == 1
    assert summary["conflicts_detected_count"] == 1
    assert "5551234567" in report_path.read_text(encoding="utf-8")


def test_cli_decisions_file_overrides_strategy(tmp_path, capsys: pytest.CaptureFixture[str]) -> None:
    config_path, input_path = _write_inputs(tmp_path)
    decisions_path = tmp_path / "decisions.json"
    decisions_path.write_text(json.dumps({"a@x.com": "replace"}), encoding="utf-8")

    exit_code = main(
        ["import", str(input_path), "--config", str(config_path), "--decisions", str(decisions_path)]
    )

    assert exit_code == 0
    summary = json.loads(capsys.readouterr().out)
    assert summary["updated_count"] == 1
    assert summary["skipped_policy_count"] == 0


def test_cli_preview_lists_conflicts(tmp_path, capsys: pytest.CaptureFixture[str]) -> None:
    config_path, input_path = _write_inputs(tmp_path)

    exit_code = main(["preview", str(input_path), "--config", str(config_path), "--default", "lead_source=fair"])

    assert exit_code == 0
    report = json.loads(capsys.readouterr().out)
    assert report["conflict_count"] == 1
    assert report["new_lead_count"] == 1
    assert report["conflicts"][0]["incoming"]["lead_source"] == "fair"


def test_cli_without_config_runs_dry(tmp_path, capsys: pytest.CaptureFixture[str]) -> None:
    _, input_path = _write_inputs(tmp_path)

    exit_code = main(["import", str(input_path)])

    assert exit_code == 0
    summary = json.loads(capsys.readouterr().out)
    assert summary["inserted_count"] == 2


def test_cli_reports_fatal_errors(tmp_path) -> None:
    config_path, input_path = _write_inputs(tmp_path)
    decisions_path = tmp_path / "decisions.json"
    decisions_path.write_text(json.dumps({"a@x.com": "clobber"}), encoding="utf-8")

    exit_code = main(
        ["import", str(input_path), "--config", str(config_path), "--decisions", str(decisions_path)]
    )

    assert exit_code == 1


def test_module_entry_point_delegates_to_cli(tmp_path, capsys: pytest.CaptureFixture[str]) -> None:
    _, input_path = _write_inputs(tmp_path)

    exit_code = __main__.main(["import", str(input_path), "--strategy", "skip"])

    assert exit_code == 0
    assert "inserted_count" in capsys.readouterr().out


def test_module_entry_point_without_arguments_shows_help(capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = __main__.main([])

    captured = capsys.readouterr()
    assert "python -m lead_importer" in captured.out
    assert exit_code == 2


def test_module_entry_point_usage_errors_name_the_module(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        __main__.main(["export", "leads.csv"])

    assert excinfo.value.code == 2
    assert "python -m lead_importer" in capsys.readouterr().err
