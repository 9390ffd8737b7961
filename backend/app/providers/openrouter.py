from __future__ import annotations

import json
import socket
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from app.config.settings import settings
from app.schemas.provider import CompletionResult


_COMPLETIONS_PATH = "/chat/completions"


def _build_body(system_prompt: str, user_prompt: str) -> bytes:
    analysis = settings.analysis
    body = {
        "model": analysis.model,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
        "temperature": analysis.temperature,
        "max_tokens": analysis.max_tokens,
    }
    return json.dumps(body).encode("utf-8")


def extract_content(payload: object) -> str | None:
    if not isinstance(payload, dict):
        return None
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    message = first.get("message")
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    if not isinstance(content, str) or not content.strip():
        return None
    return content


def request_completion(system_prompt: str, user_prompt: str) -> CompletionResult:
    analysis = settings.analysis
    if not analysis.api_key:
        return CompletionResult(provider="openrouter", status="missing_key")

    url = f"{analysis.base_url.rstrip('/')}{_COMPLETIONS_PATH}"
    request = Request(
        url,
        data=_build_body(system_prompt, user_prompt),
        method="POST",
        headers={
            "Authorization": f"Bearer {analysis.api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": analysis.referer,
            "X-Title": analysis.title,
        },
    )
    try:
        with urlopen(request, timeout=analysis.request_timeout_seconds) as response:
            body = response.read().decode("utf-8")
        payload = json.loads(body)
    except HTTPError as exc:
        status = "rate_limited" if exc.code == 429 else "error"
        return CompletionResult(provider="openrouter", status=status, detail=f"HTTP {exc.code}")
    except (URLError, json.JSONDecodeError, TimeoutError, socket.timeout) as exc:
        return CompletionResult(provider="openrouter", status="error", detail=str(exc))

    content = extract_content(payload)
    if content is None:
        return CompletionResult(provider="openrouter", status="empty", detail="No content in completion")
    return CompletionResult(provider="openrouter", content=content, status="ok")
