from __future__ import annotations

import time
from pathlib import Path

import pandas as pd
import pytest

from longflag.cli import EXIT_FAILURE, EXIT_OK, main, parse_args
from longflag.telemetry import log_run, read_runs


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch) -> Path:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("LONGFLAG_TELEMETRY__DIR", str(tmp_path / "telemetry"))
    monkeypatch.setenv("LONGFLAG_OUTPUT__DIR", str(tmp_path / "results"))
    return tmp_path


def _telemetry(workspace: Path) -> list[dict]:
    return read_runs(workspace / "telemetry")


def test_parse_args_defaults_to_evaluate() -> None:
    namespace = parse_args(["--input", "data.csv", "--id", "Person", "--time", "Time", "--value", "Score"])
    assert namespace.command == "evaluate"
    assert namespace.threshold is None
    assert namespace.method is None


def test_example_then_evaluate(workspace: Path) -> None:
    assert main(["example", "--out", "dataset_ex.csv"]) == EXIT_OK
    assert len(pd.read_csv(workspace / "dataset_ex.csv")) == 50

    exit_code = main(
        [
            "evaluate",
            "--input",
            "dataset_ex.csv",
            "--id",
            "Person",
            "--time",
            "Time",
            "--value",
            "Score",
            "--threshold",
            "4",
            "--method",
            "all_timepoints",
        ]
    )
    assert exit_code == EXIT_OK
    results = pd.read_csv(workspace / "results" / "longflag_all_timepoints.csv")
    assert list(results.columns) == ["ID", "from_time", "to_time", "change", "flagged"]
    assert len(results) == 40

    entries = _telemetry(workspace)
    assert [entry["event"] for entry in entries] == ["example", "evaluate"]
    assert entries[-1]["status"] == "success"
    assert entries[-1]["rows_processed"] == 50
    assert entries[-1]["results"] == 40
    assert entries[-1]["method"] == "all_timepoints"
    assert entries[-1]["threshold"] == 4.0
    assert isinstance(entries[-1]["flagged"], int)
    assert entries[-1]["metadata"]["subjects"] == 10


def test_evaluate_uses_settings_defaults(workspace: Path, monkeypatch) -> None:
    monkeypatch.setenv("LONGFLAG_EVALUATE__THRESHOLD", "3")
    monkeypatch.setenv("LONGFLAG_EVALUATE__METHOD", "first_last")
    pd.DataFrame({"pid": [1, 1, 2, 2], "t": [1, 2, 1, 2], "y": [0, 3, 0, 2]}).to_csv("input.csv", index=False)
    out = workspace / "out" / "flags.csv"
    assert main(["--input", "input.csv", "--id", "pid", "--time", "t", "--value", "y", "--out", str(out)]) == EXIT_OK
    results = pd.read_csv(out)
    assert results["flagged"].tolist() == [True, False]
    assert results.columns[0] == "ID"
    entry = _telemetry(workspace)[-1]
    assert entry["method"] == "first_last"
    assert entry["threshold"] == 3.0
    assert entry["flagged"] == 1


def test_id_column_option_names_subject_column(workspace: Path) -> None:
    pd.DataFrame({"pid": [1, 1], "t": [1, 2], "y": [0, 5]}).to_csv("input.csv", index=False)
    out = workspace / "flags.csv"
    args = ["--input", "input.csv", "--id", "pid", "--time", "t", "--value", "y", "--threshold", "2"]
    assert main([*args, "--id-column", "pid", "--out", str(out)]) == EXIT_OK
    assert pd.read_csv(out).columns.tolist() == ["pid", "first_value", "last_value", "change", "flagged"]


def test_missing_column_exits_with_failure(workspace: Path) -> None:
    pd.DataFrame({"pid": [1], "t": [1]}).to_csv("input.csv", index=False)
    exit_code = main(["evaluate", "--input", "input.csv", "--id", "pid", "--time", "t", "--value", "y"])
    assert exit_code == EXIT_FAILURE
    entry = _telemetry(workspace)[-1]
    assert entry["status"] == "error"
    assert entry["metadata"]["error_type"] == "SchemaError"
    assert not (workspace / "results").exists()


def test_missing_input_file_exits_with_failure(workspace: Path) -> None:
    exit_code = main(["evaluate", "--input", "absent.csv", "--id", "pid", "--time", "t", "--value", "y"])
    assert exit_code == EXIT_FAILURE
    assert _telemetry(workspace)[-1]["metadata"]["error_type"] == "FileNotFoundError"


def test_telemetry_can_be_disabled(workspace: Path, monkeypatch) -> None:
    monkeypatch.setenv("LONGFLAG_TELEMETRY__ENABLED", "false")
    assert main(["example", "--out", "copy.csv"]) == EXIT_OK
    assert not (workspace / "telemetry").exists()


def test_read_runs_without_log(tmp_path: Path) -> None:
    assert read_runs(tmp_path) == []


def test_log_run_records_method_and_threshold(tmp_path: Path) -> None:
    record = log_run(
        "evaluate",
        start_time=time.time(),
        method="mean_change",
        threshold=2.5,
        rows_processed=12,
        results=4,
        flagged=1,
        output_dir=tmp_path,
    )
    assert record.method == "mean_change"
    (entry,) = read_runs(tmp_path)
    assert entry["method"] == "mean_change"
    assert entry["threshold"] == 2.5
    assert (entry["results"], entry["flagged"]) == (4, 1)
    assert "error" not in entry
    assert "metadata" not in entry
