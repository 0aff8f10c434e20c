"""SessionService flow tests with a stub API client."""

from __future__ import annotations

import io
import json
from typing import Optional

import pytest
import requests
from rich.console import Console

from config.settings import AppConfig
from modules.services.gemini_client import GeminiClient, TransportError
from modules.services.history_service import HistoryStore, StructuredPayload
from modules.services.session_service import SessionService
from modules.ui.renderer import HistoryRenderer


class DummyClient:
    """Stub API client returning a canned body or raising."""

    def __init__(self, body: bytes = b"", error: Optional[Exception] = None) -> None:
        self.body = body
        self.error = error
        self.calls: list[tuple[str, str]] = []

    def call(self, model: str, prompt: str) -> bytes:
        self.calls.append((model, prompt))
        if self.error is not None:
            raise self.error
        return self.body


def build_session(tmp_path, client: DummyClient, config: AppConfig | None = None):
    config = config or AppConfig(api_key="test-key", history_path=tmp_path / "history.json")
    out, err = io.StringIO(), io.StringIO()
    renderer = HistoryRenderer(
        console=Console(file=out, width=100, color_system=None),
        err_console=Console(file=err, width=100, color_system=None),
    )
    store = HistoryStore(config.history_path)
    store.initialize()
    return SessionService(config, client, store, renderer), store, out, err


def answer_body(text: str) -> bytes:
    return json.dumps({"candidates": [{"content": {"parts": [{"text": text}]}}]}).encode("utf-8")


def test_successful_exchange_is_logged_and_printed(tmp_path):
    client = DummyClient(body=answer_body("Bonjour"))
    session, store, out, err = build_session(tmp_path, client)

    code = session.run("gemini-1.5-flash", "Say hello in French")

    assert code == 0
    assert client.calls == [("gemini-1.5-flash", "Say hello in French")]
    assert out.getvalue() == "Bonjour\n"
    assert "Using model:" in err.getvalue()
    records = store.load()
    assert len(records) == 1
    assert records[0].text_response == "Bonjour"


def test_transport_failure_is_not_logged(tmp_path):
    client = DummyClient(error=TransportError("connection refused"))
    session, store, _, err = build_session(tmp_path, client)

    assert session.run("m", "p") == 1
    assert "Failed to make API request" in err.getvalue()
    assert store.load() == []


def test_empty_response_is_not_logged(tmp_path):
    session, store, _, err = build_session(tmp_path, DummyClient(body=b"  \n"))

    assert session.run("m", "p") == 1
    assert "Empty response from API" in err.getvalue()
    assert store.load() == []


def test_api_error_is_logged_and_fails(tmp_path):
    body = b'{"error": {"code": 429, "message": "quota exceeded"}}'
    session, store, out, err = build_session(tmp_path, DummyClient(body=body))

    assert session.run("m", "p") == 1
    assert "quota exceeded" in err.getvalue()
    assert out.getvalue() == ""
    record = store.load()[0]
    assert isinstance(record.full_response, StructuredPayload)


def test_opaque_response_is_logged(tmp_path):
    session, store, _, err = build_session(tmp_path, DummyClient(body=b"<html>oops</html>"))

    assert session.run("m", "p") == 0
    assert "Invalid JSON response" in err.getvalue()
    assert store.load()[0].text_response == "<html>oops</html>"


def test_logging_failure_still_shows_answer(tmp_path, monkeypatch):
    session, store, out, _ = build_session(tmp_path, DummyClient(body=answer_body("still here")))

    def broken_write(entries):
        raise OSError("read-only filesystem")

    monkeypatch.setattr(store, "_write_entries", broken_write)

    assert session.run("m", "p") == 0
    assert out.getvalue() == "still here\n"


def test_history_is_mirrored_when_configured(tmp_path):
    mirror_dir = tmp_path / "drive"
    mirror_dir.mkdir()
    config = AppConfig(
        api_key="k",
        history_path=tmp_path / "history.json",
        history_mirror_dir=mirror_dir,
    )
    session, _, _, _ = build_session(tmp_path, DummyClient(body=answer_body("x")), config)

    session.run("m", "p")

    assert (mirror_dir / "history.json").is_file()


class RecordingSession:
    """Minimal stand-in for requests.Session."""

    def __init__(self, response=None, error: Optional[Exception] = None) -> None:
        self.response = response
        self.error = error
        self.kwargs: dict = {}

    def post(self, url, **kwargs):
        self.kwargs = {"url": url, **kwargs}
        if self.error is not None:
            raise self.error
        return self.response


class DummyResponse:
    status_code = 400
    content = b'{"error": {"code": 400}}'


def test_gemini_client_posts_prompt_and_returns_error_body():
    http = RecordingSession(response=DummyResponse())
    client = GeminiClient(AppConfig(api_key="secret", endpoint="https://example.test/v1beta/models"), session=http)

    body = client.call("gemini-1.5-pro", 'He said "hi"')

    assert body == DummyResponse.content
    assert http.kwargs["url"] == "https://example.test/v1beta/models/gemini-1.5-pro:generateContent"
    assert http.kwargs["params"] == {"key": "secret"}
    assert http.kwargs["json"] == {"contents": [{"parts": [{"text": 'He said "hi"'}]}]}


def test_gemini_client_wraps_transport_errors():
    http = RecordingSession(error=requests.ConnectionError("down"))
    client = GeminiClient(AppConfig(api_key="secret"), session=http)

    with pytest.raises(TransportError, match="down"):
        client.call("m", "p")


def test_deeply_nested_body_is_logged_as_text(tmp_path):
    session, store, _, err = build_session(tmp_path, DummyClient(body=b"[" * 100000))

    assert session.run("m", "p") == 0
    assert "Invalid JSON response" in err.getvalue()
    record = store.load()[0]
    assert record.full_response.text.startswith("[[[")
    assert len(record.text_response) == 1000
