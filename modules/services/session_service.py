"""One prompt/response cycle: call, classify, log, answer."""

from __future__ import annotations

import logging

from config.settings import AppConfig
from modules.services.gemini_client import GeminiClient, TransportError
from modules.services.history_service import HistoryStore
from modules.services.response_classifier import StructuredError, classify
from modules.ui.renderer import HistoryRenderer

logger = logging.getLogger(__name__)


class SessionService:
    """Glue between the API client, the history store and the renderer."""

    def __init__(
        self,
        config: AppConfig,
        client: GeminiClient,
        store: HistoryStore,
        renderer: HistoryRenderer,
    ) -> None:
        self.config = config
        self.client = client
        self.store = store
        self.renderer = renderer

    def run(self, model: str, prompt: str) -> int:
        """Return the process exit code for one exchange."""
        self.renderer.print_status(model)
        try:
            raw = self.client.call(model, prompt)
        except TransportError as exc:
            logger.error("Request for model %s failed: %s", model, exc)
            self.renderer.print_error("Failed to make API request")
            return 1

        if not raw or not raw.strip():
            self.renderer.print_error("Empty response from API")
            return 1

        response = classify(raw)
        # Logging problems are contained in the store; the answer is shown regardless.
        self.store.append(model, prompt, response)
        if self.config.history_mirror_dir is not None:
            self.store.mirror(self.config.history_mirror_dir)

        if isinstance(response, StructuredError):
            self.renderer.print_api_error(response.error)
            return 1

        self.renderer.print_answer(response)
        return 0
