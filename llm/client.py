"""
llm/client.py — The ONLY file that imports the OpenAI SDK.

Talks to any OpenAI-compatible chat completion endpoint (LM Studio,
llama.cpp server, vLLM, Ollama's /v1, OpenAI itself) through
openai.AsyncOpenAI with a custom base_url and a bearer api_key.

TWO CALL SHAPES:

  complete(system, user, json_mode=...) → str
    One request, first choice's message content. Used for intent
    inference and planning, where the caller parses JSON out of the text.

  stream(system, user, on_partial=...) → str
    stream=True. Each chunk's delta is appended; after every chunk the
    accumulated text (reasoning preamble stripped) is pushed to
    on_partial so the UI can show the summary as it is written.
    The cancellation token is checked after every chunk.

REASONING PREAMBLE:
  Reasoning models answer "<think>...</think>The answer". The preamble is
  never shown and never parsed. strip_reasoning() removes a leading
  <tag>...</tag> block; the tag name comes from settings.reasoning_tag.
  While a stream is still inside an unterminated preamble, the visible
  text is "" — nothing is pushed until the answer itself starts.

ERRORS:
  A non-2xx response becomes InferenceError carrying the backend's own
  error.message when it sends one, else the HTTP status text.
  Connection failures and timeouts become InferenceError too.

USAGE:
  from llm.client import InferenceClient

  client = InferenceClient()
  text = await client.complete("You are...", "Page: ...", json_mode=True)
  summary = await client.stream("Merge...", on_partial=print)
"""

import logging
import re
from typing import Callable

import openai
from openai import AsyncOpenAI

from agent.cancellation import CancellationToken
from agent.errors import InferenceError
from config import settings

logger = logging.getLogger(__name__)

__all__ = ["InferenceClient", "InferenceError", "strip_reasoning"]


# ── Reasoning preamble ────────────────────────────────────────────────────────

def strip_reasoning(text: str, tag: str | None = None) -> str:
    """
    Remove a leading <tag>...</tag> reasoning block and trim.

    An opening tag with no closing tag yet returns "" (the model is still
    reasoning). An empty tag disables stripping.
    """
    if not text:
        return ""
    tag = settings.reasoning_tag if tag is None else tag
    if not tag:
        return text.strip()

    name = re.escape(tag)
    closed = re.compile(rf"^\s*<{name}>.*?</{name}>", re.IGNORECASE | re.DOTALL)
    stripped, n = closed.subn("", text, count=1)
    if n:
        return stripped.strip()

    if re.match(rf"^\s*<{name}>", text, re.IGNORECASE):
        return ""
    return text.strip()


def normalize_base_url(url: str) -> str:
    """The SDK appends /chat/completions itself — accept URLs that already have it."""
    url = url.strip().rstrip("/")
    if url.endswith("/chat/completions"):
        url = url[: -len("/chat/completions")]
    return url


# ── Client ────────────────────────────────────────────────────────────────────

class InferenceClient:
    """
    Thin async wrapper around one OpenAI-compatible chat endpoint.

    Pass `client` to inject a pre-built (or mocked) AsyncOpenAI.
    """

    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        *,
        model: str | None = None,
        reasoning_tag: str | None = None,
    ) -> None:
        self._client = client or AsyncOpenAI(
            base_url=normalize_base_url(settings.base_url),
            api_key=settings.api_key or "lm-studio",
            timeout=settings.inference_timeout_seconds,
            max_retries=settings.inference_max_retries,
        )
        self._model = model or settings.model
        self._reasoning_tag = reasoning_tag

    @property
    def model(self) -> str:
        return self._model

    # ── Non-streaming ──────────────────────────────────────────────────────────

    async def complete(
        self,
        system: str,
        user: str = "",
        *,
        json_mode: bool = False,
        token: CancellationToken | None = None,
    ) -> str:
        """
        One chat completion. Returns the reasoning-stripped text.

        json_mode asks the backend for a JSON object only when
        settings.json_mode is on; the prompt asks for JSON either way.
        """
        if token is not None:
            token.raise_if_revoked()

        kwargs: dict = {"model": self._model, "messages": _messages(system, user)}
        if json_mode and settings.json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self._client.chat.completions.create(**kwargs)
        except openai.APIError as e:
            raise _to_inference_error(e) from None

        if token is not None:
            token.raise_if_revoked()

        if not response.choices:
            return ""
        return strip_reasoning(response.choices[0].message.content or "", self._reasoning_tag)

    # ── Streaming ──────────────────────────────────────────────────────────────

    async def stream(
        self,
        system: str,
        user: str = "",
        *,
        token: CancellationToken | None = None,
        on_partial: Callable[[str], None] | None = None,
    ) -> str:
        """
        Streaming chat completion. Returns the final reasoning-stripped text.

        on_partial receives the accumulated visible text after each chunk.
        Raises OperationCancelled as soon as a chunk arrives after the
        token was revoked; the stream is closed either way.
        """
        if token is not None:
            token.raise_if_revoked()

        try:
            stream = await self._client.chat.completions.create(
                model=self._model,
                messages=_messages(system, user),
                stream=True,
            )
        except openai.APIError as e:
            raise _to_inference_error(e) from None

        accumulated = ""
        try:
            async for chunk in stream:
                if token is not None:
                    token.raise_if_revoked()
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content or ""
                if not delta:
                    continue
                accumulated += delta
                if on_partial is not None:
                    visible = strip_reasoning(accumulated, self._reasoning_tag)
                    if visible:
                        on_partial(visible)
        except openai.APIError as e:
            raise _to_inference_error(e) from None
        finally:
            await stream.close()

        return strip_reasoning(accumulated, self._reasoning_tag)


# ── Private helpers ───────────────────────────────────────────────────────────

def _messages(system: str, user: str) -> list[dict]:
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": user},
    ]


def _to_inference_error(exc: openai.APIError) -> InferenceError:
    """Prefer the backend's structured error message over the status text."""
    if isinstance(exc, openai.APIStatusError):
        message = ""
        body = exc.body
        if isinstance(body, dict):
            error = body.get("error", body)
            if isinstance(error, dict):
                message = str(error.get("message") or "")
            elif isinstance(error, str):
                message = error
        if not message:
            message = exc.response.reason_phrase or f"HTTP {exc.status_code}"
        logger.warning("Backend error %s: %s", exc.status_code, message)
        return InferenceError(f"API Error: {message}")

    if isinstance(exc, openai.APITimeoutError):
        return InferenceError("API Error: request timed out")
    if isinstance(exc, openai.APIConnectionError):
        return InferenceError(f"API Error: cannot reach {settings.base_url}")
    return InferenceError(f"API Error: {exc}")
