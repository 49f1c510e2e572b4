"""Load long-format tables from disk and persist evaluation results."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import pandas as pd

LOGGER = logging.getLogger(__name__)

READ_FORMATS = {".csv": "csv", ".tsv": "tsv", ".parquet": "parquet", ".pq": "parquet", ".json": "json"}


def _resolve_format(path: Path, fmt: Optional[str]) -> str:
    if fmt:
        fmt = fmt.lower().lstrip(".")
        if fmt not in set(READ_FORMATS.values()):
            raise ValueError(f"Unsupported table format {fmt!r}; choose from {sorted(set(READ_FORMATS.values()))}")
        return fmt
    try:
        return READ_FORMATS[path.suffix.lower()]
    except KeyError:
        raise ValueError(f"Cannot infer table format from suffix {path.suffix!r} of {path}") from None


def read_table(path: str | Path, fmt: Optional[str] = None) -> pd.DataFrame:
    """Read a long-format table; the format follows the file suffix unless ``fmt`` is given."""
    path = Path(path)
    kind = _resolve_format(path, fmt)
    if not path.exists():
        raise FileNotFoundError(f"Input table not found: {path}")
    LOGGER.info("Loading %s table: %s", kind, path)
    if kind == "csv":
        return pd.read_csv(path)
    if kind == "tsv":
        return pd.read_csv(path, sep="\t")
    if kind == "parquet":
        return pd.read_parquet(path)
    return pd.read_json(path, orient="records")


def write_results(df: pd.DataFrame, path: str | Path) -> Path:
    """Write results next to their siblings, creating parent directories as needed."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    suffix = path.suffix.lower()
    if suffix in {".parquet", ".pq"}:
        df.to_parquet(path, index=False)
    elif suffix == ".json":
        df.to_json(path, orient="records", indent=2)
    else:
        df.to_csv(path, index=False)
    LOGGER.info("Wrote %d rows to %s", len(df), path)
    return path
