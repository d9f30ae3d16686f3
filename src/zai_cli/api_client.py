"""HTTP client for the chat API."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Literal

import httpx
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from zai_cli.instrumentation import record_error, request_span

logger = logging.getLogger(__name__)

API_KEY_HEADER = "ZAI-API-KEY"
THREAD_ID_HEADER = "zai-thread-id"


class APIError(Exception):
    """The API answered with a non-success status."""

    def __init__(self, message: str, status_code: int, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ChatMessage(_CamelModel):
    role: Literal["system", "user", "assistant"]
    content: str
    name: str | None = None


class AskRequest(_CamelModel):
    messages: list[ChatMessage]
    stream: bool = False
    requirement_gathering_prompt: str | None = None
    summarizer_prompt: str | None = None
    pick_agents: list[str] | None = None


class StreamConfig(_CamelModel):
    """Body of a streaming chat request."""

    thread_id: str
    content: str
    user_id: str
    original_content: str | None = None
    component_catalogue: str | None = None
    requirement_gathering_prompt: str | None = None
    summarizer_prompt: str | None = None
    message_id: str | None = None
    recursion_limit: int | None = None


class NewThreadResponse(_CamelModel):
    message: str = ""
    thread_id: str
    created_at: str = ""


class APIClient:
    """Async client for the chat endpoints.

    Args:
        base_url: Server root, e.g. ``http://localhost:3001``.
        api_key: Sent as the ``ZAI-API-KEY`` header when set.
        transport: Optional httpx transport, used by tests.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers[API_KEY_HEADER] = api_key
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> APIClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        async with request_span(method, path) as span:
            response = await self._client.request(method, path, **kwargs)
            if response.is_error:
                error = APIError(
                    f"API request failed: {response.status_code} "
                    f"{response.reason_phrase}. {response.text}",
                    status_code=response.status_code,
                    body=response.text,
                )
                record_error(span, error)
                raise error
            return response.json()

    async def ask(self, request: AskRequest) -> Any:
        return await self._request("POST", "/api/v1/chat/ask", json=request.to_payload())

    async def create_new_thread(self, user_id: str) -> NewThreadResponse:
        data = await self._request("POST", "/api/v1/chat/new", json={"userId": user_id})
        return NewThreadResponse.model_validate(data)

    @asynccontextmanager
    async def stream_chat(self, config: StreamConfig) -> AsyncIterator[httpx.Response]:
        """Open a streaming chat request.

        Yields the response once its headers have arrived; read the body
        with ``response.aiter_bytes()``.  The response is closed when the
        context exits.

        Raises:
            APIError: If the server rejects the request.
        """
        path = "/api/v1/chat/stream"
        async with request_span("POST", path) as span:
            async with self._client.stream(
                "POST",
                path,
                json=config.to_payload(),
                headers={THREAD_ID_HEADER: config.thread_id},
            ) as response:
                if response.is_error:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    error = APIError(
                        f"Stream request failed: {response.status_code} "
                        f"{response.reason_phrase}. {body}",
                        status_code=response.status_code,
                        body=body,
                    )
                    record_error(span, error)
                    raise error
                logger.info(f"Streaming thread {config.thread_id}")
                yield response

    async def get_chat_history(
        self,
        thread_id: str,
        output: Literal["latest", "full", "debug"] | None = None,
    ) -> Any:
        path = f"/api/v1/chat/{thread_id}"
        if output:
            path = f"{path}/{output}"
        return await self._request("GET", path)
