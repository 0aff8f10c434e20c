"""Terminal rendering for the history view and direct answers."""

from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

from rich import box
from rich.console import Console
from rich.json import JSON
from rich.panel import Panel
from rich.rule import Rule
from rich.text import Text

from modules.services.history_service import HistoryRecord, StructuredPayload, TextPayload
from modules.services.response_classifier import (
    ClassifiedResponse,
    Opaque,
    StructuredError,
    StructuredSuccess,
    TokenUsage,
    extract_text,
)

EMPTY_MARKERS = ("", "null", "empty")
NO_HISTORY_MESSAGE = "No conversation history found."


class HistoryRenderer:
    """Render history records and answers with rich."""

    def __init__(
        self,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
        text_width: int = 65,
    ) -> None:
        self.console = console or Console()
        self.err_console = err_console or Console(stderr=True)
        self.text_width = text_width

    def render(self, records: Sequence[HistoryRecord]) -> None:
        """Print every record, newest first, numbered from 1."""
        if not records:
            self.console.print(NO_HISTORY_MESSAGE)
            return

        self.console.print()
        self.console.print(Text("=== Conversation History (Newest First) ===", style="bold cyan"))
        self.console.print()
        for index, record in enumerate(records, start=1):
            self._render_record(index, record)

    def _render_record(self, index: int, record: HistoryRecord) -> None:
        header = Text.assemble(
            (f"[{index}]", "bold magenta"),
            " ",
            (record.timestamp, "bold yellow"),
            " | ",
            (record.model, "bold green"),
        )
        self.console.print(header)
        self.console.print(Text("❓ Prompt:", style="bold blue"))
        self.console.print(Text(record.prompt, style="white"), soft_wrap=True)

        text_response = record.text_response.strip()
        if text_response not in EMPTY_MARKERS:
            self.console.print(Text("💬 Text Response:", style="bold green"))
            self.console.print(
                Panel(
                    Text(record.text_response),
                    box=box.SQUARE,
                    width=self.text_width + 4,
                    border_style="bold white",
                )
            )

        self.console.print(Text("🔧 Full API Response:", style="bold blue"))
        payload = record.full_response
        if isinstance(payload, StructuredPayload):
            self.console.print(JSON.from_data(payload.value, indent=2))
            usage = record.usage
            if usage is not None and usage.prompt_tokens is not None:
                self.console.print(self._usage_line(usage))
        elif isinstance(payload, TextPayload):
            self.console.print(Text(payload.text), soft_wrap=True)

        self.console.print(Rule(style="grey50"))
        self.console.print()

    @staticmethod
    def _usage_line(usage: TokenUsage) -> Text:
        parts = [f"Prompt: {usage.prompt_tokens}"]
        if usage.response_tokens is not None:
            parts.append(f"Response: {usage.response_tokens}")
        if usage.total_tokens is not None:
            parts.append(f"Total: {usage.total_tokens}")
        return Text.assemble(("📊 Token Usage: ", "bold yellow"), " | ".join(parts))

    # Direct output ------------------------------------------------------------
    def print_answer(self, response: ClassifiedResponse) -> bool:
        """Print only the answer text; returns False when none could be shown."""
        if isinstance(response, StructuredSuccess):
            text = extract_text(response.value)
            if text:
                self.console.print(text, markup=False, highlight=False, soft_wrap=True)
                return True
            self.print_error("No text response found in API response")
            return False
        if isinstance(response, StructuredError):
            self.print_api_error(response.error)
            return False
        if isinstance(response, Opaque):
            self.print_error("Invalid JSON response from API")
        return False

    def print_api_error(self, error: Any) -> None:
        self.err_console.print(Text("=== API Error Response ===", style="bold red"))
        self.err_console.print(JSON.from_data(error, indent=2))

    def print_error(self, message: str) -> None:
        self.err_console.print(Text(f"Error: {message}", style="bold red"))

    def print_status(self, model: str) -> None:
        self.err_console.print(Text.assemble(("Using model: ", "bold blue"), (model, "bold green")))
        self.err_console.print(Text("Sending request...", style="bold blue"))
        self.err_console.print()

    def print_notice(self, message: str) -> None:
        self.console.print(message, markup=False, highlight=False)

    def print_models(self, models: Dict[str, str]) -> None:
        self.console.print("Available models:")
        width = max((len(name) for name in models), default=0)
        for name, description in models.items():
            self.console.print(f"  {name.ljust(width)}  - {description}", markup=False, highlight=False)
