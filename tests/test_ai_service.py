from __future__ import annotations

import threading

import pytest

pytest.importorskip("requests")

import live_feed.processing.llm_client as llm_mod  # noqa: E402
from live_feed.models.record import ContentRecord  # noqa: E402
from live_feed.processing.ai_service import AnalysisService, local_analysis  # noqa: E402


def _service(analyze=None, generate=None, **overrides) -> tuple[AnalysisService, list[str]]:
    logs: list[str] = []
    options = dict(analyze_func=analyze, generate_func=generate, logger=logs.append, timeout_sec=0.2)
    options.update(overrides)
    return AnalysisService(**options), logs


def test_parse_json_handles_fences_and_trailing_commas() -> None:
    assert llm_mod.parse_json('```json\n{"sentiment": "positive"}\n```') == {"sentiment": "positive"}
    assert llm_mod.parse_json('Result: {"topics": ["a", "b",],}') == {"topics": ["a", "b"]}
    assert llm_mod.parse_json("no json") is None


def test_analyze_text_without_api_key_returns_none(monkeypatch) -> None:
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    assert llm_mod.analyze_text("some post") is None
    assert llm_mod.generate_text("some post") is None


def test_local_analysis() -> None:
    result = local_analysis("Amazing breakthrough, great success for AI")
    assert result["sentiment"] == "positive"
    assert "technology" in result["topics"]
    assert result["source"] == "local"


def test_analyze_uses_remote_result() -> None:
    service, _ = _service(analyze=lambda text: {"sentiment": "NEGATIVE", "topics": ["war"], "summary": "s"})
    try:
        result = service.analyze("text")
    finally:
        service.shutdown()
    assert result == {"sentiment": "negative", "topics": ["war"], "summary": "s", "source": "ai"}
    assert service.fallback_count == 0


def test_analyze_falls_back_on_timeout() -> None:
    release = threading.Event()

    def _slow(text: str):
        release.wait(2.0)
        return {"sentiment": "positive"}

    service, logs = _service(analyze=_slow)
    try:
        result = service.analyze("terrible awful disaster")
    finally:
        release.set()
        service.shutdown()
    assert result["source"] == "local"
    assert result["sentiment"] == "negative"
    assert service.fallback_count == 1
    assert any("시간 초과" in line for line in logs)


def test_generate_and_narrate_fall_back_on_error() -> None:
    def _broken(prompt: str):
        raise RuntimeError("quota")

    service, logs = _service(generate=_broken)
    record = ContentRecord(id="x", title="Headline", source_tag="r/news", created_at=0.0)
    try:
        assert service.generate("Prompt text") == "Prompt text"
        assert service.narrate(record).startswith("# Headline")
    finally:
        service.shutdown()
    assert service.fallback_count == 2
    assert any("quota" in line for line in logs)


def test_disabled_service_never_calls_remote() -> None:
    calls: list[str] = []
    service, _ = _service(analyze=lambda text: calls.append(text), enabled=False)
    try:
        assert service.analyze("hello")["source"] == "local"
    finally:
        service.shutdown()
    assert calls == []


def test_shutdown_then_call_recreates_executor() -> None:
    service, _ = _service(generate=lambda prompt: f"remote {prompt}")
    try:
        assert service.generate("one") == "remote one"
        service.shutdown()
        assert service.generate("two") == "remote two"
    finally:
        service.shutdown()
    assert service.fallback_count == 0


def test_narrate_uses_remote_text() -> None:
    prompts: list[str] = []

    def _remote(prompt: str) -> str:
        prompts.append(prompt)
        return "  Breaking from the newsroom.  "

    service, _ = _service(generate=_remote)
    record = ContentRecord(id="x", title="Headline", selftext="Body one. Body two.", source_tag="r/news", created_at=0.0)
    try:
        assert service.narrate(record) == "Breaking from the newsroom."
    finally:
        service.shutdown()
    assert prompts == ["Headline - Body one"]
