"""Storage of computed reports so export commands can pick them up later."""

import hashlib
import json
import tempfile
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

# Default storage directory (cross-platform)
DEFAULT_STORAGE_DIR = Path(tempfile.gettempdir()) / "ticket-insights"


def _get_storage_dir() -> Path:
    DEFAULT_STORAGE_DIR.mkdir(parents=True, exist_ok=True)
    return DEFAULT_STORAGE_DIR


def _generate_filename(kind: str, params: dict[str, Any]) -> str:
    """Generate a unique filename for a report.

    Format: {kind}_{md5_8chars}_{timestamp}.json
    """
    params_str = json.dumps(params, sort_keys=True, default=str)
    hash_str = hashlib.md5(params_str.encode()).hexdigest()[:8]
    return f"{kind}_{hash_str}_{int(time.time())}.json"


def save_report(
    kind: str,
    params: dict[str, Any],
    data: dict[str, Any],
    output_path: Optional[str] = None,
) -> tuple[str, dict[str, Any]]:
    """Save a computed report with metadata describing how it was produced.

    Args:
        kind: Report kind ("metrics", "volume", ...)
        params: Inputs that produced the report (source file, filters, as_of)
        data: The report itself
        output_path: Optional custom output path (overrides the temp directory)

    Returns:
        Tuple of (file_path, stored_data)
    """
    if output_path:
        file_path = Path(output_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)
    else:
        file_path = _get_storage_dir() / _generate_filename(kind, params)

    stored_data = {
        "metadata": {
            "kind": kind,
            "params": params,
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "filePath": str(file_path),
        },
        "data": data,
    }

    with open(file_path, "w") as f:
        json.dump(stored_data, f, indent=2, default=str)

    return str(file_path), stored_data


def load_report(file_path: str | Path) -> dict[str, Any]:
    """Load a previously saved report.

    Raises:
        FileNotFoundError: If file doesn't exist
        json.JSONDecodeError: If file is not valid JSON
    """
    with open(file_path) as f:
        return json.load(f)


def find_latest_report(kind: str = "metrics") -> Path | None:
    """Return the most recently written report of ``kind``, if any."""
    if not DEFAULT_STORAGE_DIR.exists():
        return None
    candidates = list(DEFAULT_STORAGE_DIR.glob(f"{kind}_*.json"))
    if not candidates:
        return None
    return max(candidates, key=lambda f: f.stat().st_mtime)
