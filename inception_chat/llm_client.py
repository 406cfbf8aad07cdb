from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from .config import DEFAULT_API_URL

NO_RESPONSE_TEXT = "[No response]"
REASONING_MODEL = "mercury-2"
REASONING_EFFORT = "instant"


class ChatClientError(RuntimeError):
    """Raised when the completion API cannot produce a reply."""


@dataclass(frozen=True)
class CompletionRequest:
    model: str
    messages: list[dict[str, str]] = field(default_factory=list)
    max_tokens: int = 16384
    reasoning: bool = False

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [dict(message) for message in self.messages],
            "max_tokens": self.max_tokens,
        }
        # Only mercury-2 understands the reasoning toggle
        if self.reasoning and self.model == REASONING_MODEL:
            payload["reasoning_effort"] = REASONING_EFFORT
        return payload


class InceptionClient:
    def __init__(self, base_url: str = DEFAULT_API_URL, timeout: float = 60.0) -> None:
        self._url = base_url
        self._timeout = timeout

    def complete(self, api_key: str, request: CompletionRequest) -> str:
        if not api_key or not api_key.strip():
            raise ChatClientError("API key is not set.")
        body = json.dumps(request.to_payload()).encode("utf-8")
        payload = _request_json(self._url, body, api_key.strip(), self._timeout)
        return extract_reply(payload)


def extract_reply(payload: Any) -> str:
    try:
        content = payload["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return NO_RESPONSE_TEXT
    if not isinstance(content, str) or not content:
        return NO_RESPONSE_TEXT
    return content


def _request_json(url: str, payload: bytes, api_key: str, timeout: float) -> Any:
    request = Request(
        url,
        data=payload,
        headers={
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Authorization": f"Bearer {api_key}",
        },
        method="POST",
    )
    try:
        with urlopen(request, timeout=timeout) as response:
            body = response.read()
    except HTTPError as exc:
        raise ChatClientError(f"API error: {exc.code} {exc.reason}") from exc
    except URLError as exc:
        raise ChatClientError(f"API connection failed: {exc.reason}") from exc
    except TimeoutError as exc:
        raise ChatClientError("API request timed out.") from exc
    if not body:
        return None
    try:
        return json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ChatClientError("API returned an invalid response.") from exc
