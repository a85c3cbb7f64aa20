"""Core configuration.

Why here:
- Centralises environment variables (pydantic-settings) away from the CLI.
- Lets the browser adapter, the queue consumer and the orchestrator read the
  same validated values.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

import typer
from dotenv import set_key
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


APP_NAME = "toxscan"

DEFAULT_PORTAL_URL = "https://portalservicos.senatran.serpro.gov.br/#/condutor/consultar-toxicologico"

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class CapturePolicy(str, Enum):
    """When the diagnostic screenshot is taken on a terminal outcome."""

    ALWAYS = "always"
    ON_FAILURE_ONLY = "on-failure-only"


def get_user_env_file() -> Path:
    """`.env` in the per-user app directory (APPDATA, Application Support or XDG)."""

    return Path(typer.get_app_dir(APP_NAME)) / ".env"


def write_user_env_vars(values: dict[str, str | None], *, env_path: Path | None = None) -> Path:
    """Set `values` in the per-user `.env`, keeping the keys already there."""

    env_path = env_path or get_user_env_file()
    if not env_path.exists():
        env_path.parent.mkdir(parents=True, exist_ok=True)
        env_path.write_text(f"# {APP_NAME} user config, written by `toxscan doctor`\n", encoding="utf-8")

    for key, value in values.items():
        if value is not None:
            set_key(env_path, key, value, quote_mode="never")
    return env_path


class AppSettings(BaseSettings):
    """Central application settings.

    Order of precedence: environment, project `.env`, then the per-user
    `.env` written by `toxscan doctor setup-queue`.
    """

    model_config = SettingsConfigDict(
        env_prefix="TOXSCAN_",
        extra="ignore",
        case_sensitive=False,
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    # Batch orchestration
    max_concurrency: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Maximum number of browser sessions open at the same time.",
    )
    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per query before it becomes a terminal failure.",
    )
    retry_delay_seconds: float = Field(
        default=0.5,
        ge=0,
        le=30,
        description="Fixed pause between attempts (no backoff, no jitter).",
    )
    step_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Timeout for each interaction step (navigate, submit, outcome).",
    )
    capture_policy: CapturePolicy = Field(
        default=CapturePolicy.ALWAYS,
        description="Take the diagnostic screenshot always or only on failures.",
    )
    screenshot_dir: Path | None = Field(
        default=None,
        description="If set, diagnostic screenshots are also written here as PNG.",
    )

    # Portal / browser
    portal_url: str = Field(
        default=DEFAULT_PORTAL_URL,
        min_length=8,
        description="URL of the toxicological exam lookup form.",
    )
    headless: bool = Field(
        default=False,
        description="Run Chromium headless (the portal tends to block headless).",
    )
    browser_executable_path: Path | None = Field(
        default=None,
        description="Chrome/Chromium binary; Playwright's bundled build when unset.",
    )
    user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        min_length=1,
        description="User-Agent for every browser session.",
    )
    viewport_width: int = Field(default=1920, ge=320)
    viewport_height: int = Field(default=1080, ge=240)
    locale: str = Field(default="pt-BR", min_length=2)

    http_timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        description="Timeout for plain HTTP checks (seconds).",
    )

    # Persistence
    results_path: Path = Field(
        default=Path("resultados.json"),
        description="JSON array file the CLI appends results to.",
    )

    # Queue (SQS)
    aws_region: str | None = Field(default=None, description="AWS region of the queues.")
    queue_url: str | None = Field(default=None, description="Queue the queries are read from.")
    response_queue_url: str | None = Field(
        default=None,
        description="Queue each serialized result is relayed to.",
    )
    queue_batch_size: int = Field(
        default=10,
        ge=1,
        le=10,
        description="Messages received per poll (SQS caps this at 10).",
    )
    queue_wait_time_seconds: int = Field(
        default=20,
        ge=0,
        le=20,
        description="Long-polling wait per receive call.",
    )
