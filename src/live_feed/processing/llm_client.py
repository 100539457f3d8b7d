from __future__ import annotations

import ast
import json
import os
import re
import time
from pathlib import Path
from typing import Any

import requests
from dotenv import load_dotenv

from live_feed.utils import clean_text

_AI_UNAVAILABLE_LOGGED: set[str] = set()

_repo_root = Path(__file__).resolve().parents[3]
load_dotenv(dotenv_path=_repo_root / ".env")

GEMINI_API_BASE = os.getenv("GEMINI_API_BASE", "https://generativelanguage.googleapis.com/v1beta")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
GEMINI_TIMEOUT_SEC = int(os.getenv("GEMINI_TIMEOUT_SEC", "20"))
GEMINI_MAX_RETRIES = int(os.getenv("GEMINI_MAX_RETRIES", "1"))
GEMINI_RETRY_BACKOFF_SEC = float(os.getenv("GEMINI_RETRY_BACKOFF_SEC", "1.0"))
GEMINI_MAX_OUTPUT_TOKENS = int(os.getenv("GEMINI_MAX_OUTPUT_TOKENS", "600"))
AI_INPUT_MAX_CHARS = int(os.getenv("AI_INPUT_MAX_CHARS", "2000"))

_RETRYABLE_STATUSES = {429, 500, 502, 503, 504}

ANALYZE_SYSTEM_PROMPT = (
    "You analyze short social media posts for a live news feed. "
    "Return only a JSON object with keys: "
    '"sentiment" ("positive" | "negative" | "neutral"), '
    '"topics" (list of up to 5 lowercase topic labels), '
    '"summary" (one sentence, at most 150 characters).'
)

NARRATE_SYSTEM_PROMPT = (
    "You are a live news host. Rewrite the given post as a short spoken "
    "narration of two or three sentences. Do not invent facts."
)


def log_ai_unavailable(reason: str) -> None:
    # AI 비활성 사유를 중복 없이 로그 출력
    if reason in _AI_UNAVAILABLE_LOGGED:
        return
    print(f"⚠️ AI 분석 비활성: {reason}")
    _AI_UNAVAILABLE_LOGGED.add(reason)


def _extract_gemini_text(payload: dict[str, Any]) -> str:
    # Gemini REST 응답에서 텍스트만 추출
    try:
        return payload["candidates"][0]["content"]["parts"][0]["text"].strip()
    except Exception:
        return ""


def parse_json(text: str) -> dict[str, Any] | None:
    # 문자열에서 JSON 객체를 파싱(직접 파싱 실패 시 중괄호 블록 탐색)
    if not text:
        return None
    raw = text.strip()
    raw = re.sub(r"```(?:json)?", "", raw, flags=re.IGNORECASE).replace("```", "").strip()

    def _try_load_json(payload: str) -> dict[str, Any] | None:
        try:
            obj = json.loads(payload)
            return obj if isinstance(obj, dict) else None
        except Exception:
            return None

    parsed = _try_load_json(raw)
    if parsed is not None:
        return parsed

    # 모델이 여분 텍스트를 섞을 때 대비한 백업 파서
    match = re.search(r"\{.*\}", raw, flags=re.DOTALL)
    if not match:
        return None
    cleaned = re.sub(r",\s*([}\]])", r"\1", match.group(0))
    parsed = _try_load_json(cleaned)
    if parsed is not None:
        return parsed
    try:
        obj = ast.literal_eval(cleaned)
        return obj if isinstance(obj, dict) else None
    except Exception:
        return None


def _gemini_generate(system_prompt: str, user_prompt: str, *, json_mode: bool) -> str | None:
    # Gemini REST API 호출, 재시도 가능한 오류는 지수 백오프
    api_key = os.getenv("GEMINI_API_KEY", "").strip()
    if not api_key:
        log_ai_unavailable("GEMINI_API_KEY 미설정")
        return None
    url = f"{GEMINI_API_BASE}/models/{GEMINI_MODEL}:generateContent"
    generation_config: dict[str, Any] = {
        "temperature": 0.2 if json_mode else 0.7,
        "maxOutputTokens": GEMINI_MAX_OUTPUT_TOKENS,
    }
    if json_mode:
        generation_config["responseMimeType"] = "application/json"
    request_payload = {
        "contents": [{"role": "user", "parts": [{"text": user_prompt}]}],
        "systemInstruction": {"parts": [{"text": system_prompt}]},
        "generationConfig": generation_config,
    }
    max_attempts = max(1, GEMINI_MAX_RETRIES + 1)
    last_err = ""
    for attempt in range(1, max_attempts + 1):
        try:
            resp = requests.post(
                url,
                headers={"x-goog-api-key": api_key, "Content-Type": "application/json"},
                json=request_payload,
                timeout=GEMINI_TIMEOUT_SEC,
            )
        except Exception as e:
            last_err = f"{type(e).__name__}: {e}"
            if attempt < max_attempts:
                time.sleep(GEMINI_RETRY_BACKOFF_SEC * (2 ** (attempt - 1)))
                continue
            log_ai_unavailable(f"Gemini 호출 실패: {last_err}")
            return None

        if not resp.ok:
            last_err = f"{resp.status_code} {resp.text[:200]}"
            if resp.status_code in _RETRYABLE_STATUSES and attempt < max_attempts:
                time.sleep(GEMINI_RETRY_BACKOFF_SEC * (2 ** (attempt - 1)))
                continue
            log_ai_unavailable(f"Gemini 호출 실패: {last_err}")
            return None

        try:
            data = resp.json()
        except Exception:
            last_err = "Gemini 응답 JSON 파싱 실패"
            if attempt < max_attempts:
                continue
            log_ai_unavailable(last_err)
            return None

        text = _extract_gemini_text(data)
        if text:
            return text
        last_err = "Gemini 응답 텍스트 비어있음"

    if last_err:
        log_ai_unavailable(last_err)
    return None


def analyze_text(text: str) -> dict[str, Any] | None:
    """게시물 텍스트 → {sentiment, topics, summary}. 사용할 수 없으면 None."""
    cleaned = clean_text(text or "")
    if not cleaned:
        return None
    raw = _gemini_generate(ANALYZE_SYSTEM_PROMPT, cleaned[:AI_INPUT_MAX_CHARS], json_mode=True)
    if not raw:
        return None
    parsed = parse_json(raw)
    if not isinstance(parsed, dict):
        snippet = re.sub(r"\s+", " ", raw)[:160]
        log_ai_unavailable(f"Gemini 응답 JSON 형식 아님: {snippet}")
        return None
    return parsed


def generate_text(prompt: str) -> str | None:
    cleaned = clean_text(prompt or "")
    if not cleaned:
        return None
    return _gemini_generate(NARRATE_SYSTEM_PROMPT, cleaned[:AI_INPUT_MAX_CHARS], json_mode=False)
