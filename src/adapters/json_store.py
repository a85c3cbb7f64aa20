"""JSON roster loading and incremental result persistence.

Why JSON:
- The roster comes from other systems as a plain JSON array.
- Results are appended one by one as they complete, so a crash mid-batch
  still leaves every finished lookup on disk.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from core.domain.errors import RosterLoadError
from core.domain.models import DriverQuery, QueryResult

logger = logging.getLogger(__name__)


def load_queries(path: Path) -> list[DriverQuery]:
    """Read a JSON array of driver queries.

    Only file-level problems raise. An unreadable entry still becomes a query
    and fails on its own when the batch runs.
    """

    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise RosterLoadError(f"roster file not found: {path}") from exc

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise RosterLoadError(f"roster file is not valid JSON: {exc}") from exc
    if not isinstance(data, list):
        raise RosterLoadError("roster file must contain a JSON array")

    return [DriverQuery.from_untrusted(item) for item in data]


def _read_existing(path: Path) -> list[object]:
    if not path.exists():
        return []
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.error("Could not read existing %s, starting a new file: %s", path, exc)
        return []
    if not isinstance(data, list):
        logger.error("%s does not hold a JSON array, starting a new file", path)
        return []
    return data


def append_result(*, result: QueryResult, output_path: Path) -> Path:
    """Append `result` to the JSON array at `output_path`.

    A missing or corrupt file is replaced by a new array.
    """

    entries = _read_existing(output_path)
    entries.append(result.to_wire())

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(
        json.dumps(entries, ensure_ascii=False, indent=2) + "\n",
        encoding="utf-8",
    )
    logger.debug("Saved result for CPF %s to %s", result.payload.label, output_path)
    return output_path
