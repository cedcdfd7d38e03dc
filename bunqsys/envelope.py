"""Decoding of the bunq response envelope.

Every bunq endpoint answers with one of two shapes::

    {"Response": [{"<Variant>": {...}}, ...], "Pagination": {...}}
    {"Error": [{"error_description": "...", "error_description_translated": "..."}]}

A ``Response`` list is heterogeneous: each entry is a single-key object whose
key names the variant. Callers pass a mapping of variant name to parser and
then search the decoded entries with :meth:`SuccessEnvelope.find` rather than
relying on positions or key order.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Union

from bunqsys.errors import (
    ErrorDetail,
    MissingExpectedVariantError,
    ProviderError,
    ResponseDeserializationError,
)

logger = logging.getLogger(__name__)

VariantParser = Callable[[Any], Any]


@dataclass(frozen=True)
class Entry:
    """One tagged entry of a ``Response`` list."""

    variant: str
    value: Any


@dataclass(frozen=True)
class Pagination:
    future_url: str | None = None
    newer_url: str | None = None
    older_url: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Pagination:
        return cls(
            future_url=data.get("future_url"),
            newer_url=data.get("newer_url"),
            older_url=data.get("older_url"),
        )


@dataclass(frozen=True)
class SuccessEnvelope:
    entries: list[Entry] = field(default_factory=list)
    pagination: Pagination | None = None

    def find(self, variant: str) -> Any | None:
        """Return the value of the first entry tagged ``variant``, if any."""
        for entry in self.entries:
            if entry.variant == variant:
                return entry.value
        return None

    def find_all(self, variant: str) -> list[Any]:
        return [entry.value for entry in self.entries if entry.variant == variant]

    def require(self, variant: str) -> Any:
        """Like find, but a missing entry is an error. A null payload is returned as-is."""
        for entry in self.entries:
            if entry.variant == variant:
                return entry.value
        raise MissingExpectedVariantError(variant)

    def values(self) -> list[Any]:
        return [entry.value for entry in self.entries]


@dataclass(frozen=True)
class ErrorEnvelope:
    errors: list[ErrorDetail] = field(default_factory=list)

    def to_exception(self) -> ProviderError:
        return ProviderError(self.errors)


Envelope = Union[SuccessEnvelope, ErrorEnvelope]


def _load_json(content: str | bytes | Mapping[str, Any]) -> Mapping[str, Any]:
    if isinstance(content, Mapping):
        return content
    try:
        data = json.loads(content)
    except (TypeError, ValueError) as exc:
        raise ResponseDeserializationError(f"body is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ResponseDeserializationError(f"expected a JSON object, got {type(data).__name__}")
    return data


def _decode_error_entry(raw: Any) -> ErrorDetail:
    if not isinstance(raw, Mapping):
        raise ResponseDeserializationError(f"error entry is not an object: {raw!r}")
    try:
        return ErrorDetail(
            error_description=str(raw["error_description"]),
            error_description_translated=str(raw["error_description_translated"]),
        )
    except KeyError as exc:
        raise ResponseDeserializationError(f"error entry lacks {exc.args[0]!r}") from exc


def _decode_entry(
    raw: Any, variants: Mapping[str, VariantParser] | None, strict: bool
) -> Entry:
    if not isinstance(raw, Mapping) or len(raw) != 1:
        raise ResponseDeserializationError(f"response entry must be a single-key object: {raw!r}")
    ((variant, payload),) = raw.items()

    if variants is None:
        return Entry(variant=variant, value=payload)

    parser = variants.get(variant)
    if parser is None:
        if strict:
            raise ResponseDeserializationError(f"unexpected variant {variant!r}")
        logger.debug(f"Keeping unrecognised response variant {variant!r} undecoded")
        return Entry(variant=variant, value=payload)

    try:
        return Entry(variant=variant, value=parser(payload))
    except (KeyError, TypeError, ValueError) as exc:
        raise ResponseDeserializationError(f"cannot decode {variant!r}: {exc!r}") from exc


def decode_envelope(
    content: str | bytes | Mapping[str, Any],
    variants: Mapping[str, VariantParser] | None = None,
    *,
    strict: bool = False,
) -> Envelope:
    """Decode a raw response body into a success or error envelope.

    Args:
        content: Response body (text, bytes or an already parsed mapping)
        variants: Parsers keyed by variant name. ``None`` keeps every payload raw.
        strict: When True, a variant missing from ``variants`` is an error
            (closed set). Otherwise it is kept undecoded (open set).

    Raises:
        ResponseDeserializationError: If the body is not one of the two shapes.
    """
    data = _load_json(content)
    has_response = "Response" in data
    has_error = "Error" in data

    if has_response == has_error:
        raise ResponseDeserializationError(
            f"expected exactly one of 'Response' or 'Error', got keys {sorted(data)}"
        )

    if has_error:
        raw_errors = data["Error"]
        if not isinstance(raw_errors, list):
            raise ResponseDeserializationError("'Error' must be a list")
        return ErrorEnvelope(errors=[_decode_error_entry(e) for e in raw_errors])

    raw_entries = data["Response"]
    if not isinstance(raw_entries, list):
        raise ResponseDeserializationError("'Response' must be a list")

    entries = [_decode_entry(raw, variants, strict) for raw in raw_entries]
    pagination = data.get("Pagination")
    return SuccessEnvelope(
        entries=entries,
        pagination=Pagination.from_mapping(pagination) if isinstance(pagination, Mapping) else None,
    )


def unwrap(envelope: Envelope) -> SuccessEnvelope:
    """Return the success envelope or raise its errors as ProviderError."""
    if isinstance(envelope, ErrorEnvelope):
        raise envelope.to_exception()
    return envelope


def decode_success(
    content: str | bytes | Mapping[str, Any],
    variants: Mapping[str, VariantParser] | None = None,
    *,
    strict: bool = False,
) -> SuccessEnvelope:
    return unwrap(decode_envelope(content, variants, strict=strict))


__all__ = [
    "Entry",
    "Envelope",
    "ErrorEnvelope",
    "Pagination",
    "SuccessEnvelope",
    "decode_envelope",
    "decode_success",
    "unwrap",
]
