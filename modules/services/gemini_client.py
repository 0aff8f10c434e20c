"""Thin requests-based client for the generateContent endpoint."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from config.settings import AppConfig

logger = logging.getLogger(__name__)


class TransportError(RuntimeError):
    """Raised when no response could be obtained from the API."""


class GeminiClient:
    """Send a single prompt and return the raw response body."""

    def __init__(self, config: AppConfig, session: Optional[requests.Session] = None) -> None:
        self.config = config
        self._session = session or requests.Session()

    def build_payload(self, prompt: str) -> Dict[str, Any]:
        """Embed the prompt as the only text part of a single content entry."""
        return {"contents": [{"parts": [{"text": prompt}]}]}

    def call(self, model: str, prompt: str) -> bytes:
        """POST the prompt; HTTP error statuses still return their body."""
        url = f"{self.config.endpoint}/{model}:generateContent"
        try:
            response = self._session.post(
                url,
                params={"key": self.config.require_api_key()},
                headers={"Content-Type": "application/json"},
                json=self.build_payload(prompt),
                timeout=self.config.request_timeout,
            )
        except requests.RequestException as exc:
            raise TransportError(f"Failed to make API request: {exc}") from exc

        logger.info("generateContent %s -> HTTP %s (%d bytes)", model, response.status_code, len(response.content))
        return response.content
