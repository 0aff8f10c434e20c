"""Bounded, newest-first conversation history persisted as one JSON document."""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from modules.services.response_classifier import (
    ClassifiedResponse,
    Opaque,
    StructuredError,
    StructuredSuccess,
    TokenUsage,
    classify,
    extract_text,
    extract_usage,
    opaque_excerpt,
    reject_non_finite,
)

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50
FILE_MODE = 0o600


@dataclass(frozen=True, slots=True)
class StructuredPayload:
    """Parsed JSON response kept as a value tree."""

    value: Any


@dataclass(frozen=True, slots=True)
class TextPayload:
    """Response that was not JSON, kept verbatim."""

    text: str


ResponsePayload = Union[StructuredPayload, TextPayload]


def _timestamp_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class HistoryRecord:
    """One logged prompt/response exchange."""

    timestamp: str
    model: str
    prompt: str
    full_response: ResponsePayload
    text_response: str = ""

    @property
    def usage(self) -> Optional[TokenUsage]:
        """Token usage derived from a structured payload, if any."""
        if isinstance(self.full_response, StructuredPayload):
            return extract_usage(self.full_response.value)
        return None

    def to_dict(self) -> Dict[str, Any]:
        if isinstance(self.full_response, StructuredPayload):
            full_response, response_type = self.full_response.value, "json"
        else:
            full_response, response_type = self.full_response.text, "text"
        return {
            "timestamp": self.timestamp,
            "model": self.model,
            "prompt": self.prompt,
            "full_response": full_response,
            "full_response_type": response_type,
            "text_response": self.text_response,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryRecord":
        """Rebuild a record, tolerating entries written by older versions."""
        raw = data.get("full_response", data.get("response"))
        response_type = data.get("full_response_type")
        if response_type == "json":
            payload: ResponsePayload = StructuredPayload(raw)
        elif response_type == "text" or isinstance(raw, str):
            payload = TextPayload(raw if isinstance(raw, str) else json.dumps(raw))
        elif raw is None:
            payload = TextPayload("")
        else:
            payload = StructuredPayload(raw)

        text_response = data.get("text_response")
        return cls(
            timestamp=str(data.get("timestamp") or ""),
            model=str(data.get("model") or ""),
            prompt=str(data.get("prompt") or ""),
            full_response=payload,
            text_response=text_response if isinstance(text_response, str) else "",
        )


def build_record(
    model: str,
    prompt: str,
    response: ClassifiedResponse,
    timestamp: datetime,
) -> HistoryRecord:
    """Create a record from an already classified response."""
    if isinstance(response, (StructuredSuccess, StructuredError)):
        payload: ResponsePayload = StructuredPayload(response.value)
        text_response = extract_text(response.value)
    elif isinstance(response, Opaque):
        payload = TextPayload(response.text)
        text_response = opaque_excerpt(response.raw or response.text) if response.text else ""
    else:
        raise TypeError(f"unsupported response type: {type(response).__name__}")

    return HistoryRecord(
        timestamp=timestamp.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        model=model,
        prompt=prompt,
        full_response=payload,
        text_response=text_response,
    )


class HistoryStore:
    """JSON-backed history log capped at ``limit`` entries, newest first.

    The file is rewritten as a whole through a temporary file and an atomic
    rename. There is no cross-process lock: concurrent appends may lose one
    another, but readers never see a partially written document.
    """

    def __init__(
        self,
        history_path: Path,
        limit: int = DEFAULT_HISTORY_LIMIT,
        clock: Callable[[], datetime] = _timestamp_now,
    ) -> None:
        self.history_path = Path(history_path)
        self.limit = limit
        self._clock = clock

    def initialize(self) -> None:
        """Create the log if absent and reset it if it does not parse."""
        try:
            if not self.history_path.exists():
                self._write_entries([])
                return
            try:
                self._parse(self.history_path.read_text(encoding="utf-8"))
            except (ValueError, RecursionError):
                logger.warning("History file %s is corrupted, resetting...", self.history_path)
                self._write_entries([])
        except OSError as exc:
            logger.warning("Could not initialize history file %s: %s", self.history_path, exc)

    def append(
        self,
        model: str,
        prompt: str,
        response: Union[bytes, str, ClassifiedResponse],
    ) -> Optional[HistoryRecord]:
        """Prepend an exchange and trim the log; returns None if the append was abandoned."""
        try:
            if isinstance(response, (StructuredSuccess, StructuredError, Opaque)):
                classified = response
            else:
                classified = classify(response)
            record = build_record(model, prompt, classified, self._clock())
            entries = [record.to_dict()] + self._read_entries()
            self._write_entries(entries[: self.limit])
        except (OSError, TypeError, ValueError, RecursionError) as exc:
            logger.warning("Failed to update conversation history: %s", exc)
            return None
        return record

    def clear(self) -> bool:
        """Replace the log with an empty array."""
        try:
            self._write_entries([])
        except OSError as exc:
            logger.warning("Could not clear history file %s: %s", self.history_path, exc)
            return False
        return True

    def load(self) -> List[HistoryRecord]:
        """Return the stored records, newest first."""
        records: List[HistoryRecord] = []
        for position, entry in enumerate(self._read_entries()):
            if not isinstance(entry, dict):
                logger.warning("Skipping malformed history entry #%d", position + 1)
                continue
            records.append(HistoryRecord.from_dict(entry))
        return records

    def mirror(self, target_dir: Path) -> Optional[Path]:
        """Copy the log into ``target_dir``; failures are logged, not raised."""
        if not self.history_path.is_file():
            return None
        try:
            return Path(shutil.copy2(self.history_path, Path(target_dir)))
        except OSError as exc:
            logger.info("Could not mirror history to %s: %s", target_dir, exc)
            return None

    # Internal helpers ---------------------------------------------------------
    @staticmethod
    def _parse(text: str) -> List[Any]:
        data = json.loads(text, parse_constant=reject_non_finite)
        if not isinstance(data, list):
            raise ValueError("history document is not an array")
        return data

    def _read_entries(self) -> List[Any]:
        """Read the current array fresh from disk; unreadable content counts as empty."""
        try:
            text = self.history_path.read_text(encoding="utf-8")
            if not text.strip():
                return []
            return self._parse(text)
        except FileNotFoundError:
            return []
        except (ValueError, RecursionError):
            logger.warning("History file %s is corrupted, treating it as empty", self.history_path)
            return []

    def _write_entries(self, entries: List[Any]) -> None:
        # Serialize before touching the filesystem so a bad entry leaves the log intact.
        document = json.dumps(entries, indent=2, ensure_ascii=False, allow_nan=False)
        directory = self.history_path.parent
        directory.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.history_path.name}.", suffix=".tmp", dir=directory
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fp:
                fp.write(document)
                fp.write("\n")
                fp.flush()
                os.fsync(fp.fileno())
            os.chmod(tmp_name, FILE_MODE)
            os.replace(tmp_name, self.history_path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
