"""Explicit validators for cache envelopes.

Every read of a cache file goes through ``validate_entry``, which returns
``Ok(entry)`` or ``Invalid(reason)`` and never raises. Callers turn any
``Invalid`` into a cache miss, so a bad entry can never be partially trusted.

Gates, in order:
  1. Envelope structure (``version``/``hash``/``timestamp`` present and typed,
     hash matches the requested key)
  2. Schema version equality
  3. Age within the namespace TTL
The payload is parsed into the namespace model only after all three pass.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Generic, TypeVar

from pydantic import ValidationError

from agentforge.models.cache import CacheEntryMeta

T = TypeVar("T")
M = TypeVar("M", bound=CacheEntryMeta)


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True, slots=True)
class Invalid:
    reason: str


def _first_error(exc: ValidationError) -> str:
    err = exc.errors()[0]
    location = ".".join(str(part) for part in err["loc"]) or "<root>"
    return f"{location}: {err['msg']}"


def check_envelope(raw: object, expected_hash: str) -> Ok[CacheEntryMeta] | Invalid:
    """Gate 1: the raw JSON must be an envelope for this key."""
    try:
        meta = CacheEntryMeta.model_validate(raw)
    except ValidationError as exc:
        return Invalid(f"malformed envelope ({_first_error(exc)})")
    if meta.hash != expected_hash:
        return Invalid("envelope hash does not match key")
    return Ok(meta)


def check_schema_version(meta: CacheEntryMeta, schema_version: str) -> Ok[CacheEntryMeta] | Invalid:
    """Gate 2: entries written under any other schema version are absent."""
    if meta.version != schema_version:
        return Invalid(f"schema version {meta.version!r} != {schema_version!r}")
    return Ok(meta)


def check_age(meta: CacheEntryMeta, ttl: timedelta, now: datetime) -> Ok[CacheEntryMeta] | Invalid:
    """Gate 3: valid while ``0 <= age <= ttl``."""
    timestamp = meta.timestamp
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=UTC)
    age = now - timestamp
    if age < timedelta(0):
        return Invalid("timestamp is in the future")
    if age > ttl:
        return Invalid(f"expired (age {age}, ttl {ttl})")
    return Ok(meta)


def validate_entry(
    raw: object,
    model: type[M],
    *,
    expected_hash: str,
    schema_version: str,
    ttl: timedelta,
    now: datetime | None = None,
) -> Ok[M] | Invalid:
    """Run the three gates, then parse the payload into ``model``."""
    now = now or datetime.now(UTC)

    result: Ok[CacheEntryMeta] | Invalid = check_envelope(raw, expected_hash)
    if isinstance(result, Ok):
        result = check_schema_version(result.value, schema_version)
    if isinstance(result, Ok):
        result = check_age(result.value, ttl, now)
    if isinstance(result, Invalid):
        return result

    try:
        return Ok(model.model_validate(raw))
    except ValidationError as exc:
        return Invalid(f"malformed payload ({_first_error(exc)})")
