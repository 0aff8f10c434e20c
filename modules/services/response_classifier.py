"""Classification of raw generateContent responses and derived-field extraction."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Optional, Union

OPAQUE_EXCERPT_BYTES = 1000


@dataclass(frozen=True, slots=True)
class StructuredSuccess:
    """A response body that parsed as JSON."""

    value: Any


@dataclass(frozen=True, slots=True)
class StructuredError:
    """A JSON object carrying a top-level ``error`` field."""

    value: Any

    @property
    def error(self) -> Any:
        return self.value.get("error")


@dataclass(frozen=True, slots=True)
class Opaque:
    """A response body that is not JSON, kept as text."""

    text: str
    raw: bytes = field(default=b"", compare=False, repr=False)


ClassifiedResponse = Union[StructuredSuccess, StructuredError, Opaque]


@dataclass(frozen=True, slots=True)
class TokenUsage:
    """Token counts reported under ``usageMetadata``; absent counts stay None."""

    prompt_tokens: Optional[int] = None
    response_tokens: Optional[int] = None
    total_tokens: Optional[int] = None


def reject_non_finite(name: str) -> Any:
    """``parse_constant`` hook refusing NaN and Infinity."""
    raise ValueError(f"non-finite JSON constant {name}")


def _as_bytes(raw: bytes | str) -> bytes:
    if isinstance(raw, str):
        return raw.encode("utf-8", errors="surrogatepass")
    return bytes(raw)


def classify(raw: bytes | str) -> ClassifiedResponse:
    """Tag a raw payload as structured success, structured error or opaque text."""
    data = _as_bytes(raw)
    try:
        value = json.loads(data, parse_constant=reject_non_finite)
    except (ValueError, RecursionError):
        return Opaque(text=data.decode("utf-8", errors="replace"), raw=data)

    if isinstance(value, dict) and "error" in value:
        return StructuredError(value)
    return StructuredSuccess(value)


def opaque_excerpt(raw: bytes | str) -> str:
    """Return the first 1000 bytes of a payload with null bytes stripped."""
    head = _as_bytes(raw)[:OPAQUE_EXCERPT_BYTES].replace(b"\x00", b"")
    # A multi-byte character cut at the boundary is dropped.
    return head.decode("utf-8", errors="ignore")


def _lookup(value: Any, *path: str | int) -> Any:
    current = value
    for segment in path:
        if isinstance(segment, int):
            if not isinstance(current, list) or len(current) <= segment:
                return None
        elif not isinstance(current, dict):
            return None
        elif segment not in current:
            return None
        current = current[segment]
        if current is None:
            return None
    return current


def extract_text(value: Any) -> str:
    """Return ``candidates[0].content.parts[0].text`` or an empty string."""
    text = _lookup(value, "candidates", 0, "content", "parts", 0, "text")
    return text if isinstance(text, str) else ""


def _count(value: Any, key: str) -> Optional[int]:
    count = _lookup(value, "usageMetadata", key)
    if isinstance(count, bool) or not isinstance(count, int):
        return None
    return count


def extract_usage(value: Any) -> TokenUsage:
    """Collect the optional token counts of a structured response."""
    return TokenUsage(
        prompt_tokens=_count(value, "promptTokenCount"),
        response_tokens=_count(value, "candidatesTokenCount"),
        total_tokens=_count(value, "totalTokenCount"),
    )
