"""Decoding of ticket exports (JSON or CSV) into raw row mappings.

Whole-batch problems (unreadable file, JSON syntax error, empty CSV) raise
ImportFailure here, before anything reaches the normalizer or the engine.
"""

import csv
import io
import json
import logging
from pathlib import Path

import pandas as pd

from ticket_insights.errors import ImportFailure

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = {".json": "json", ".csv": "csv"}


def parse_json_records(text: str, source: str | None = None) -> list[dict]:
    """Decode a JSON array of objects, or a single object, into rows."""
    if not text.strip():
        raise ImportFailure("No data to import: input is empty", source)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ImportFailure(f"Invalid JSON: {e}", source) from e

    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        raise ImportFailure("JSON must be an array of objects or a single object", source)
    if not data:
        raise ImportFailure("No data to import: JSON array is empty", source)
    return data


def parse_csv_records(text: str, source: str | None = None) -> list[dict]:
    """Decode CSV with a header row into rows keyed by header label.

    The delimiter is sniffed from the header line, so both comma and
    semicolon exports load. Every cell stays text; blank cells are "".
    """
    text = text.lstrip("\ufeff")
    if not text.strip():
        raise ImportFailure("No data to import: CSV is empty", source)

    try:
        df = pd.read_csv(
            io.StringIO(text),
            sep=None,
            engine="python",
            dtype=str,
            keep_default_na=False,
        )
    except pd.errors.EmptyDataError as e:
        raise ImportFailure("No data to import: CSV is empty", source) from e
    except (pd.errors.ParserError, csv.Error) as e:
        raise ImportFailure(f"Invalid CSV: {e}", source) from e

    if not df.empty:
        # Rows made only of separators carry no ticket
        df = df[(df.apply(lambda col: col.str.strip()) != "").any(axis=1)]
    if df.empty:
        raise ImportFailure("No data to import: CSV has a header but no rows", source)
    return df.to_dict("records")


def load_raw_records(path: str | Path) -> list[dict]:
    """Read a ticket export from disk.

    Args:
        path: A ``.json`` or ``.csv`` file.

    Returns:
        Decoded rows, ready for normalization.

    Raises:
        ImportFailure: If the file is missing, unsupported or malformed.
    """
    path = Path(path)
    kind = SUPPORTED_SUFFIXES.get(path.suffix.lower())
    if kind is None:
        raise ImportFailure(
            f"Unsupported file type '{path.suffix}'. Use .json or .csv", str(path)
        )

    try:
        text = path.read_text(encoding="utf-8-sig")
    except FileNotFoundError as e:
        raise ImportFailure(f"File not found: {path}", str(path)) from e
    except (OSError, UnicodeDecodeError) as e:
        raise ImportFailure(f"Could not read {path}: {e}", str(path)) from e

    rows = parse_json_records(text, str(path)) if kind == "json" else parse_csv_records(text, str(path))
    logger.info("action=load_raw_records path=%s format=%s rows=%s", path, kind, len(rows))
    return rows
