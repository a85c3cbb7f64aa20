"""Normalisation of the portal's result table into an `ExtractedRecord`."""

from __future__ import annotations

import re
from typing import Mapping

from core.domain.models import ExtractedRecord

EXPIRY_LABEL = "Prazo para realização de novo exame"
COLLECTION_LABEL = "Amostra para novo exame coletada em"
NO_RECORD_SENTINEL = "Não há registro"

_DATE_RE = re.compile(r"(\d{2})/(\d{2})/(\d{4})")


def format_portal_date(value: str | None) -> str | None:
    """`15/03/2025` -> `2025-03-15 00:00:00.000`.

    Returns None when no `dd/mm/yyyy` date appears in `value`.
    """

    if not value:
        return None
    match = _DATE_RE.search(value)
    if not match:
        return None
    day, month, year = match.groups()
    return f"{year}-{month}-{day} 00:00:00.000"


def extract_date(text: str | None) -> str | None:
    if not text or NO_RECORD_SENTINEL in text:
        return None
    return format_portal_date(text)


def parse_record(rows: Mapping[str, str]) -> ExtractedRecord:
    return ExtractedRecord(
        expired_at=extract_date(rows.get(EXPIRY_LABEL)),
        collection_date=extract_date(rows.get(COLLECTION_LABEL)),
    )
