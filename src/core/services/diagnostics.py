"""Best-effort diagnostic screenshots.

Rules:
- Runs once per query, on its terminal outcome, while the last session is
  still open.
- Never raises: a failed capture is logged and becomes `None`.
"""

from __future__ import annotations

import base64
import binascii
import logging
from pathlib import Path

from core.config import CapturePolicy
from core.domain.errors import DiagnosticCaptureError
from core.domain.models import Attempt, AttemptStatus, DriverQuery
from core.interfaces.portal import PortalSession

logger = logging.getLogger(__name__)


def _safe_name(value: str) -> str:
    cleaned = "".join(ch if ch.isalnum() or ch in ("-", "_") else "-" for ch in value.strip())
    return cleaned.strip("-_") or "query"


class DiagnosticCapturer:
    def __init__(
        self,
        *,
        policy: CapturePolicy = CapturePolicy.ALWAYS,
        screenshot_dir: Path | None = None,
    ) -> None:
        self._policy = policy
        self._screenshot_dir = screenshot_dir

    def wants(self, attempt: Attempt) -> bool:
        if attempt.outcome.status is AttemptStatus.SUCCESS:
            return self._policy is CapturePolicy.ALWAYS
        return True

    async def capture(self, session: PortalSession, query: DriverQuery, attempt: Attempt) -> str | None:
        try:
            image = await self._take(session)
        except DiagnosticCaptureError as exc:
            logger.warning("Diagnostic capture failed for %s: %s", query.label, exc)
            return None

        if self._screenshot_dir is not None:
            self._write_png(image, query=query, attempt=attempt)
        return image

    async def _take(self, session: PortalSession) -> str:
        try:
            image = await session.screenshot_base64()
        except Exception as exc:
            raise DiagnosticCaptureError(str(exc) or type(exc).__name__) from exc
        if not image:
            raise DiagnosticCaptureError("empty screenshot")
        return image

    def _write_png(self, image: str, *, query: DriverQuery, attempt: Attempt) -> None:
        status = "ok" if attempt.outcome.status is AttemptStatus.SUCCESS else "error"
        path = self._screenshot_dir / f"{status}_{_safe_name(query.label)}_attempt{attempt.sequence}.png"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(base64.b64decode(image, validate=True))
        except (OSError, binascii.Error) as exc:
            logger.warning("Could not save screenshot %s: %s", path, exc)
