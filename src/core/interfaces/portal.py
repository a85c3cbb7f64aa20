"""Contracts for the external interactive system (the portal).

Why Protocol:
- Defines a structural contract (duck typing) without rigid inheritance.
- The core only sees these methods; Playwright lives in
  `adapters.browser` and the tests use scripted doubles.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Protocol, runtime_checkable

from core.domain.models import DriverQuery


@runtime_checkable
class PortalSession(Protocol):
    """One isolated, stateful handle to the portal (cookies, storage, page).

    Design rules:
    - Every method is async because it waits on the browser.
    - A session serves exactly one attempt of one query; it is never reused.
    """

    async def navigate(self) -> None:
        """Load the lookup form."""

        ...

    async def submit(self, query: DriverQuery) -> None:
        """Fill the form with the query fields and submit it."""

        ...

    async def wait_for_success(self) -> None:
        """Return once the result page is visible."""

        ...

    async def wait_for_rejection(self) -> None:
        """Return once the portal's error banner is visible."""

        ...

    async def rejection_message(self) -> str:
        """Human-readable text of the error banner."""

        ...

    async def result_rows(self) -> dict[str, str]:
        """Label -> value pairs of the result table."""

        ...

    async def screenshot_base64(self) -> str:
        """Full-page PNG screenshot, base64 encoded."""

        ...

    async def close(self) -> None:
        ...


@runtime_checkable
class AutomationEngine(Protocol):
    """Long-lived engine shared by every session of one batch."""

    async def open_session(self) -> PortalSession:
        ...

    async def close(self) -> None:
        ...


EngineFactory = Callable[[], Awaitable[AutomationEngine]]
