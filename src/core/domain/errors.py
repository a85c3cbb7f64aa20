"""Error taxonomy of the lookup pipeline.

Per-query errors never leave the orchestrator as exceptions: the executor
folds them into the query's `QueryResult`. The classes still exist so the
collaborators (browser adapter, capturer, loader) can raise something
meaningful and the executor can classify it.
"""

from __future__ import annotations


class ToxScanError(Exception):
    """Base class for every error raised by this project."""


class QueryValidationError(ToxScanError):
    """A required query field is missing. Not retryable."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__(f"missing required fields: {', '.join(self.missing)}")


class RemoteRejection(ToxScanError):
    """The portal answered with a domain-level negative outcome (e.g. driver not found)."""


class TransientInfrastructureError(ToxScanError):
    """Navigation, timeout or unexpected fault while driving the portal."""


class DiagnosticCaptureError(ToxScanError):
    """The evidence screenshot could not be taken. Always swallowed."""


class EngineStartError(ToxScanError):
    """The shared automation engine failed to launch. Fatal for the batch."""


class EngineBusyError(ToxScanError):
    """Attempted to close the engine while sessions are still open."""


class GateReleaseError(ToxScanError):
    """`release()` called without a matching `acquire()`."""


class RosterLoadError(ToxScanError):
    """The input roster file is missing or is not a JSON array of queries."""
