"""Run telemetry appended as JSON lines."""

from __future__ import annotations

import json
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

DEFAULT_OUTPUT = Path("longflag_output")
TELEMETRY_FILE = "telemetry.jsonl"


@dataclass
class RunRecord:
    """One CLI invocation: what ran, with which method and threshold, and how it ended."""

    event: str
    duration_ms: int
    status: str = "success"
    method: Optional[str] = None
    threshold: Optional[float] = None
    rows_processed: int = 0
    results: Optional[int] = None
    flagged: Optional[int] = None
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_json(self) -> str:
        payload = {key: value for key, value in asdict(self).items() if value not in (None, {})}
        return json.dumps(payload, default=str)


def log_run(
    event: str,
    *,
    start_time: float,
    status: str = "success",
    method: Optional[str] = None,
    threshold: Optional[float] = None,
    rows_processed: int = 0,
    results: Optional[int] = None,
    flagged: Optional[int] = None,
    error: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    output_dir: Path | str = DEFAULT_OUTPUT,
) -> RunRecord:
    """Append a run record to ``<output_dir>/telemetry.jsonl`` and return it."""

    record = RunRecord(
        event=event,
        duration_ms=int((time.time() - start_time) * 1000),
        status=status,
        method=method,
        threshold=threshold,
        rows_processed=rows_processed,
        results=results,
        flagged=flagged,
        error=error,
        metadata=dict(metadata or {}),
    )
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)
    with (output_path / TELEMETRY_FILE).open("a", encoding="utf-8") as handle:
        handle.write(record.to_json() + "\n")
    return record


def read_runs(output_dir: Path | str = DEFAULT_OUTPUT) -> List[Dict[str, Any]]:
    """Return logged entries oldest first; an absent log reads as no runs."""
    log_path = Path(output_dir) / TELEMETRY_FILE
    if not log_path.exists():
        return []
    with log_path.open("r", encoding="utf-8") as handle:
        return [json.loads(line) for line in handle if line.strip()]
