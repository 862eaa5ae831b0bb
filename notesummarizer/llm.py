"""Chat-completion client — wraps the openai SDK for any compatible backend.

Exactly one ``POST {base_url}/chat/completions`` request is sent per call: the
SDK's own retries are disabled.  The raw HTTP response is used instead of the
SDK's parsed model so that a non-JSON body and a structurally invalid body map
to distinct errors:

* ``TransportError``    : the request could not be completed at all.
* ``HttpStatusError``   : non-2xx status (with ``detail``/``error.message``).
* ``ResponseParseError``: the body is not JSON.
* ``ProtocolError``     : no non-blank ``choices[0].message.content``.
"""

import json
import logging
import time

import httpx
import openai as _openai
from pydantic import ValidationError

from notesummarizer.models import (
    DEFAULT_TEMPERATURE,
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatMessage,
    Config,
    HttpStatusError,
    ProtocolError,
    ResponseParseError,
    TransportError,
)

logger = logging.getLogger(__name__)


class ChatCompletionClient:
    """OpenAI-compatible chat-completion client.

    Sampling options set to ``None`` are left out of the request body entirely;
    only ``temperature`` has a default (0.3).

    Attributes:
        model:    The model identifier passed to every request.
        base_url: API base URL, without trailing slash.
    """

    def __init__(
        self,
        model: str,
        base_url: str,
        api_key: str,
        timeout_s: int = 120,
        temperature: float | None = None,
        max_tokens: int | None = None,
        top_p: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.model = model
        self.base_url = base_url
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.top_p = top_p
        self._client = _openai.AsyncOpenAI(
            base_url=base_url,
            api_key=api_key,
            timeout=timeout_s,
            max_retries=0,
            http_client=http_client,
        )

    def build_request(self, prompt: str) -> dict:
        """Return the JSON request body for ``prompt``."""
        request = ChatCompletionRequest(
            model=self.model,
            messages=[ChatMessage(role="user", content=prompt)],
            temperature=(
                self.temperature if self.temperature is not None else DEFAULT_TEMPERATURE
            ),
            max_tokens=self.max_tokens,
            top_p=self.top_p,
        )
        return request.model_dump(exclude_none=True)

    async def complete(self, prompt: str) -> str:
        """Send ``prompt`` as a single user message and return the reply text.

        Raises:
            TransportError, HttpStatusError, ResponseParseError, ProtocolError
        """
        body = self.build_request(prompt)
        logger.info("Calling LLM  model=%s  backend=%s", self.model, self.base_url)
        t0 = time.monotonic()
        try:
            raw = await self._client.chat.completions.with_raw_response.create(**body)
        except _openai.APIStatusError as exc:
            raise _status_error(self.base_url, exc.response) from exc
        except _openai.APIConnectionError as exc:
            cause = exc.__cause__ or exc
            raise TransportError(
                f"Network error while calling {self.base_url}: {cause}"
            ) from exc

        text = raw.http_response.text
        elapsed = time.monotonic() - t0
        logger.info("Response received (%.1fs, %s chars)", elapsed, f"{len(text):,}")
        return _extract_content(self.base_url, text)


def create_client(
    config: Config, http_client: httpx.AsyncClient | None = None
) -> ChatCompletionClient:
    """Create a client from configuration."""
    return ChatCompletionClient(
        model=config.model,
        base_url=config.base_url,
        api_key=config.api_key,
        timeout_s=config.timeout_s,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
        top_p=config.top_p,
        http_client=http_client,
    )


def _status_error(base_url: str, response: httpx.Response) -> HttpStatusError:
    detail = _error_detail(response.text)
    message = f"{base_url} HTTP Error: {response.status_code} {response.reason_phrase}"
    if detail:
        message = f"{message} - {detail}"
    return HttpStatusError(
        message,
        status_code=response.status_code,
        reason=response.reason_phrase,
        detail=detail,
    )


def _error_detail(body: str) -> str | None:
    """Extract ``detail`` or ``error.message`` from a JSON error body, if any."""
    try:
        data = json.loads(body)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None

    detail = data.get("detail")
    if not detail:
        error = data.get("error")
        if isinstance(error, dict):
            detail = error.get("message")
    return str(detail) if detail else None


def _extract_content(base_url: str, body: str) -> str:
    """Validate a response body and return ``choices[0].message.content``."""
    try:
        data = json.loads(body)
    except ValueError as exc:
        raise ResponseParseError(
            f"Error when parsing json of {base_url}/chat/completions: {exc}"
        ) from exc

    try:
        response = ChatCompletionResponse.model_validate(data)
    except ValidationError as exc:
        raise ProtocolError(f"Invalid LLM response: {exc.error_count()} schema error(s).") from exc

    if not response.choices:
        raise ProtocolError("Invalid LLM response: missing choices.")

    message = response.choices[0].message
    content = message.content if message is not None else None
    if not isinstance(content, str) or not content.strip():
        raise ProtocolError("Invalid LLM response: missing choices[0].message.content.")
    return content
