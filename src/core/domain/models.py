"""Domain models (Pydantic v2).

Why Pydantic in the domain:
- Strict validation and self-documenting fields (Field) without coupling the
  core to I/O libraries.
- Queries arrive as JSON from files or queue messages and results leave as
  JSON; the models own both directions.

Note:
- These models describe *what* the data is, not *how* it is obtained.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from pydantic import (
    AliasChoices,
    BaseModel,
    Field,
    PrivateAttr,
    SerializerFunctionWrapHandler,
    ValidationError,
    ValidationInfo,
    model_serializer,
    model_validator,
)
from pydantic.config import ConfigDict

logger = logging.getLogger(__name__)


REQUIRED_QUERY_FIELDS: tuple[str, ...] = (
    "subject_identifier",
    "birth_date",
    "document_expiry_date",
)


class DriverQuery(BaseModel):
    """One driver's lookup request.

    The original roster format (`cpf`, `birthday`, `cnh_due_at`) is accepted
    through aliases, and numeric values are read as strings. The input as
    received is kept and serialized back verbatim, so the payload reaches the
    consumer of the results with the caller's own keys and values.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="allow",
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )

    _received: Any = PrivateAttr(default=None)

    identifier: str | int | None = Field(
        default=None,
        validation_alias=AliasChoices("identifier", "id"),
        description="Opaque identifier chosen by the caller.",
    )
    subject_identifier: str | None = Field(
        default=None,
        validation_alias=AliasChoices("subject_identifier", "cpf"),
        description="Driver's CPF as typed into the portal.",
    )
    birth_date: str | None = Field(
        default=None,
        validation_alias=AliasChoices("birth_date", "birthday"),
        description="Birth date, dd/mm/yyyy.",
    )
    document_expiry_date: str | None = Field(
        default=None,
        validation_alias=AliasChoices("document_expiry_date", "cnh_due_at"),
        description="Driving licence (CNH) expiry date, dd/mm/yyyy.",
    )

    @model_validator(mode="wrap")
    @classmethod
    def _remember_input(
        cls,
        data: Any,
        handler: Callable[[Any], "DriverQuery"],
        info: ValidationInfo,
    ) -> "DriverQuery":
        query = handler(data)
        if query is not data:
            context = info.context or {}
            query._received = context.get("received", data)
        return query

    @model_serializer(mode="wrap")
    def _dump_as_received(self, handler: SerializerFunctionWrapHandler) -> Any:
        if self._received is None:
            return handler(self)
        return copy.deepcopy(self._received)

    @classmethod
    def from_untrusted(cls, data: Any) -> "DriverQuery":
        """Build a query from one roster entry or message body, never raising.

        Keys whose values cannot be read are left out, so the query reports
        them as missing and fails on its own without touching its siblings.
        The payload still serializes exactly as `data` was received.
        """

        context = {"received": data}
        if not isinstance(data, dict):
            logger.warning("Query entry is not an object: %r", data)
            return cls.model_validate({}, context=context)
        try:
            return cls.model_validate(data, context=context)
        except ValidationError as exc:
            rejected: set[str] = set()
            for error in exc.errors():
                if error["loc"]:
                    rejected.update(cls._input_keys(str(error["loc"][0])))
            logger.warning("Dropping unreadable fields %s: %s", sorted(rejected), exc)
            readable = {key: value for key, value in data.items() if key not in rejected}
            return cls.model_validate(readable, context=context)

    @classmethod
    def _input_keys(cls, key: str) -> list[str]:
        """Every input key that feeds the same field as `key`."""

        for name, info in cls.model_fields.items():
            alias = info.validation_alias
            keys = [name, *(alias.choices if isinstance(alias, AliasChoices) else [])]
            if key in keys:
                return [str(k) for k in keys]
        return [key]

    def missing_fields(self) -> list[str]:
        """Names of required fields that are absent or blank."""

        missing: list[str] = []
        for name in REQUIRED_QUERY_FIELDS:
            value = getattr(self, name)
            if value is None or not str(value).strip():
                missing.append(name)
        return missing

    @property
    def label(self) -> str:
        """Short identifier for logs and file names."""

        return str(self.subject_identifier or self.identifier or "unknown")


class ExtractedRecord(BaseModel):
    """Fields parsed from the portal's result table."""

    model_config = ConfigDict(frozen=True)

    expired_at: str | None = Field(
        default=None,
        description="Deadline for the next exam, `YYYY-MM-DD 00:00:00.000`.",
    )
    collection_date: str | None = Field(
        default=None,
        description="Date the sample for the next exam was collected, same format.",
    )


class QueryOutcome(BaseModel):
    """Outcome block of a result, in the wire format consumers expect."""

    model_config = ConfigDict(frozen=True)

    success: bool = Field(..., description="True when the portal returned a record.")
    expired_at: str | None = None
    collection_date: str | None = None
    captured_image_base64: str | None = Field(
        default=None,
        description="Full-page PNG screenshot taken on the terminal outcome.",
    )
    error: str | None = Field(default=None, description="Last error message on failure.")


class QueryResult(BaseModel):
    """Terminal, immutable outcome for one query."""

    model_config = ConfigDict(frozen=True)

    payload: DriverQuery
    result: QueryOutcome

    @property
    def success(self) -> bool:
        return self.result.success

    @classmethod
    def succeeded(
        cls,
        query: DriverQuery,
        record: ExtractedRecord,
        *,
        capture: str | None = None,
    ) -> "QueryResult":
        return cls(
            payload=query,
            result=QueryOutcome(
                success=True,
                expired_at=record.expired_at,
                collection_date=record.collection_date,
                captured_image_base64=capture,
            ),
        )

    @classmethod
    def failed(cls, query: DriverQuery, error: str, *, capture: str | None = None) -> "QueryResult":
        return cls(
            payload=query,
            result=QueryOutcome(success=False, error=error, captured_image_base64=capture),
        )

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready dict (`{payload, result}`)."""

        return self.model_dump(mode="json")


class AttemptStatus(str, Enum):
    """Tag of one attempt's outcome."""

    SUCCESS = "success"
    RETRY = "retry"
    FAIL = "fail"


class FailureKind(str, Enum):
    VALIDATION = "validation"
    REMOTE_REJECTION = "remote_rejection"
    TRANSIENT = "transient"
    ENGINE_START = "engine_start"


@dataclass(frozen=True)
class AttemptOutcome:
    """Tagged outcome of one attempt: Success, Retry or Fail."""

    status: AttemptStatus
    record: ExtractedRecord | None = None
    kind: FailureKind | None = None
    message: str | None = None

    @classmethod
    def success(cls, record: ExtractedRecord) -> "AttemptOutcome":
        return cls(status=AttemptStatus.SUCCESS, record=record)

    @classmethod
    def retry(cls, kind: FailureKind, message: str) -> "AttemptOutcome":
        return cls(status=AttemptStatus.RETRY, kind=kind, message=message)

    @classmethod
    def fail(cls, kind: FailureKind, message: str) -> "AttemptOutcome":
        return cls(status=AttemptStatus.FAIL, kind=kind, message=message)


@dataclass(frozen=True)
class Attempt:
    """One pass through the interaction steps for a query."""

    sequence: int
    outcome: AttemptOutcome

    def is_terminal(self, max_attempts: int) -> bool:
        """True when no further attempt follows this one."""

        if self.outcome.status is not AttemptStatus.RETRY:
            return True
        return self.sequence >= max_attempts


@dataclass(frozen=True)
class BatchSummary:
    """Counters of one finished (or abandoned) batch."""

    total: int
    succeeded: int
    failed: int
    duration_seconds: float
    max_open_sessions: int
