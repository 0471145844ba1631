"""HTTP adapters around hosted chat-completion APIs (OpenAI / Anthropic)."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from http.client import HTTPException
from typing import Any, Callable, Dict, Optional, Tuple
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from ..config import LLMConfig
from ..errors import ExternalServiceError

DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "anthropic": "claude-3-5-haiku-latest",
}
DEFAULT_BASE_URLS = {
    "openai": "https://api.openai.com/v1",
    "anthropic": "https://api.anthropic.com/v1",
}
ANTHROPIC_VERSION = "2023-06-01"
ANTHROPIC_MAX_TOKENS = 1024
DEFAULT_TIMEOUT = 30.0


@dataclass
class LLMRequest:
    """One prompt bound to the provider settings it will be sent with."""

    prompt: str
    system: Optional[str]
    provider: str
    model: str
    temperature: Optional[float]
    max_tokens: Optional[int]
    base_url: str
    api_key: Optional[str]
    request_timeout: Optional[float]


class LLMRunner:
    """Sends similarity and translation prompts to a hosted model.

    Transport failures surface as :class:`ExternalServiceError` so callers can
    degrade instead of aborting the merge. Tests pass ``runner`` to replace
    the HTTP call entirely.
    """

    def __init__(
        self,
        provider: str = "openai",
        model: str | None = None,
        *,
        base_url: str | None = None,
        api_key: str | None = None,
        temperature: Optional[float] = 0.0,
        max_tokens: Optional[int] = None,
        request_timeout: Optional[float] = DEFAULT_TIMEOUT,
        runner: Callable[[LLMRequest], str] | None = None,
    ) -> None:
        self.provider = provider.lower()
        if self.provider not in DEFAULT_BASE_URLS:
            raise ValueError(f"Unsupported LLM provider: {provider}")
        self.model = model or DEFAULT_MODELS[self.provider]
        self.base_url = (base_url or DEFAULT_BASE_URLS[self.provider]).rstrip("/")
        self.api_key = api_key
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.request_timeout = request_timeout
        self._send = runner or self._http_runner

    @classmethod
    def from_config(
        cls, config: LLMConfig, *, runner: Callable[[LLMRequest], str] | None = None
    ) -> "LLMRunner":
        """Build a runner whose credential comes from ``config.api_key_env``."""
        return cls(
            config.provider,
            config.model,
            base_url=config.base_url,
            api_key=os.getenv(config.api_key_env) or None,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            request_timeout=config.timeout_seconds,
            runner=runner,
        )

    def run(self, prompt: str, *, system: str | None = None) -> str:
        return self._send(
            LLMRequest(
                prompt=prompt,
                system=system,
                provider=self.provider,
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                base_url=self.base_url,
                api_key=self.api_key,
                request_timeout=self.request_timeout,
            )
        )

    def _http_runner(self, request: LLMRequest) -> str:
        if request.provider == "anthropic":
            path, payload, headers = _anthropic_call(request)
        else:
            path, payload, headers = _openai_call(request)
        reply = _post_json(f"{request.base_url}/{path}", payload, headers, request)
        text = _reply_text(request.provider, reply)
        if not text:
            raise ExternalServiceError(f"{request.provider} returned an empty response")
        return text.strip()


def _openai_call(request: LLMRequest) -> Tuple[str, Dict[str, Any], Dict[str, str]]:
    messages = [{"role": "user", "content": request.prompt}]
    if request.system:
        messages.insert(0, {"role": "system", "content": request.system})
    payload: Dict[str, Any] = {"model": request.model, "messages": messages}
    if request.temperature is not None:
        payload["temperature"] = request.temperature
    if request.max_tokens is not None:
        payload["max_tokens"] = request.max_tokens
    headers = {"Content-Type": "application/json"}
    if request.api_key:
        headers["Authorization"] = f"Bearer {request.api_key}"
    return "chat/completions", payload, headers


def _anthropic_call(request: LLMRequest) -> Tuple[str, Dict[str, Any], Dict[str, str]]:
    payload: Dict[str, Any] = {
        "model": request.model,
        "max_tokens": request.max_tokens or ANTHROPIC_MAX_TOKENS,
        "messages": [{"role": "user", "content": request.prompt}],
    }
    if request.system:
        payload["system"] = request.system
    if request.temperature is not None:
        payload["temperature"] = request.temperature
    headers = {"Content-Type": "application/json", "anthropic-version": ANTHROPIC_VERSION}
    if request.api_key:
        headers["x-api-key"] = request.api_key
    return "messages", payload, headers


def _post_json(
    url: str, payload: Dict[str, Any], headers: Dict[str, str], request: LLMRequest
) -> Dict[str, Any]:
    timeout = request.request_timeout or DEFAULT_TIMEOUT
    body = json.dumps(payload).encode("utf-8")
    try:
        with urlopen(Request(url, data=body, headers=headers, method="POST"), timeout=timeout) as response:  # type: ignore[arg-type]
            raw = response.read()
    except HTTPError as exc:  # pragma: no cover - network path
        detail = exc.read().decode("utf-8", errors="ignore").strip()
        raise ExternalServiceError(
            f"{request.provider} request to {url} failed ({exc.code}): {detail or exc.reason}"
        ) from exc
    except URLError as exc:  # pragma: no cover - network path
        raise ExternalServiceError(f"{request.provider} is unreachable at {url}: {exc.reason}") from exc
    except TimeoutError as exc:  # pragma: no cover - network path
        raise ExternalServiceError(f"{request.provider} did not answer within {timeout}s") from exc
    except (OSError, HTTPException) as exc:
        # dropped connections and truncated bodies from http.client
        raise ExternalServiceError(f"{request.provider} connection failed: {exc!r}") from exc

    try:
        decoded = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ExternalServiceError(f"{request.provider} returned a non-JSON body") from exc
    if not isinstance(decoded, dict):
        raise ExternalServiceError(f"{request.provider} returned {type(decoded).__name__}, expected an object")
    return decoded


def _reply_text(provider: str, reply: Dict[str, Any]) -> str:
    if provider == "anthropic":
        blocks = reply.get("content")
        if not isinstance(blocks, list):
            return ""
        return "".join(
            block["text"]
            for block in blocks
            if isinstance(block, dict) and block.get("type") == "text" and isinstance(block.get("text"), str)
        )
    choices = reply.get("choices") or [{}]
    first = choices[0] if isinstance(choices, list) and isinstance(choices[0], dict) else {}
    message = first.get("message")
    content = message.get("content") if isinstance(message, dict) else first.get("text")
    return content if isinstance(content, str) else ""


__all__ = ["LLMRequest", "LLMRunner"]
