"""Command-line entry point for the gurl Gemini client."""

from __future__ import annotations

import argparse
import sys
from typing import Optional, Sequence

from config.settings import AppConfig, ConfigurationError, load_config
from modules.services.gemini_client import GeminiClient
from modules.services.history_service import HistoryStore
from modules.services.session_service import SessionService
from modules.ui.renderer import HistoryRenderer
from modules.utils.logging import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gurl",
        description="Send a prompt to the Gemini API and keep a local conversation history.",
    )
    parser.add_argument("-m", "--model", help="model to use (default: MODEL from the config file)")
    parser.add_argument("-l", "--list-models", action="store_true", help="list available models")
    parser.add_argument("-c", "--clear-log", action="store_true", help="clear conversation history")
    parser.add_argument("-v", "--view-log", action="store_true", help="view conversation history")
    parser.add_argument("--config", help="path to the KEY=VALUE config file")
    parser.add_argument("prompt", nargs="*", help="prompt text")
    return parser


def main(
    argv: Optional[Sequence[str]] = None,
    config: Optional[AppConfig] = None,
    renderer: Optional[HistoryRenderer] = None,
    client: Optional[GeminiClient] = None,
) -> int:
    """Parse arguments, dispatch the requested command and return an exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)
    config = config or load_config(args.config)
    setup_logging(config)

    renderer = renderer or HistoryRenderer()
    store = HistoryStore(config.history_path, limit=config.history_limit)

    if args.list_models:
        renderer.print_models(config.known_models)
        return 0

    store.initialize()

    if args.clear_log:
        store.clear()
        renderer.print_notice("Conversation history cleared.")
        return 0

    if args.view_log:
        renderer.render(store.load())
        return 0

    prompt = " ".join(args.prompt)
    if not prompt:
        renderer.print_error("No prompt provided")
        parser.print_usage(sys.stderr)
        return 1

    try:
        config.require_api_key()
    except ConfigurationError as exc:
        renderer.print_error(str(exc))
        return 1

    session = SessionService(config, client or GeminiClient(config), store, renderer)
    return session.run(args.model or config.default_model, prompt)


if __name__ == "__main__":
    sys.exit(main())
