import asyncio
from time import monotonic

import httpx
import openai
from openai import AsyncOpenAI

from hybrid_categorizer.core.settings import RemoteSettings
from hybrid_categorizer.logger import get_logger

logger = get_logger(__name__)

RATE_LIMITED_STATUS = 429


class RemoteModelError(Exception):
    """A chat-completion request that produced no usable content."""

    def __init__(self, message: str, status: int | None = None, model: str | None = None):
        super().__init__(message)
        self.status = status
        self.model = model

    @property
    def rate_limited(self) -> bool:
        return self.status == RATE_LIMITED_STATUS


class ChatCompletionClient:
    """OpenAI-compatible chat completions against OpenRouter.

    SDK retries are disabled: the primary/secondary model chain in the
    batchers is the only retry policy.
    """

    def __init__(
        self,
        settings: RemoteSettings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.settings = settings or RemoteSettings.from_env()
        self._http_client = http_client
        self._client: AsyncOpenAI | None = None
        self._client_lock = asyncio.Lock()

    @property
    def enabled(self) -> bool:
        return bool(self.settings.api_key)

    async def _get_client(self) -> AsyncOpenAI:
        client = self._client
        if client is not None:
            return client

        async with self._client_lock:
            if self._client is None:
                self._client = AsyncOpenAI(
                    api_key=self.settings.api_key,
                    base_url=self.settings.base_url,
                    timeout=self.settings.timeout_seconds,
                    max_retries=0,
                    default_headers={
                        "HTTP-Referer": self.settings.site_url,
                        "X-Title": self.settings.site_name,
                    },
                    http_client=self._http_client,
                )
            return self._client

    async def complete(self, model: str, system: str, user: str, temperature: float) -> str:
        """Run one chat completion and return the message content.

        Raises RemoteModelError on any request failure or empty content.
        """
        if not self.enabled:
            raise RemoteModelError("OPENROUTER_API_KEY is not configured", model=model)

        client = await self._get_client()
        started = monotonic()
        logger.debug(f"Calling OpenRouter model={model}")
        try:
            response = await client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                temperature=temperature,
                response_format={"type": "json_object"},
            )
        except openai.APIStatusError as exc:
            raise RemoteModelError(
                f"OpenRouter returned {exc.status_code}: {str(exc.message)[:150]}",
                status=exc.status_code,
                model=model,
            ) from exc
        except openai.APITimeoutError as exc:
            raise RemoteModelError(
                f"OpenRouter request timed out after {self.settings.timeout_seconds}s",
                model=model,
            ) from exc
        except openai.APIConnectionError as exc:
            raise RemoteModelError(f"OpenRouter connection failed: {exc}", model=model) from exc
        except openai.APIError as exc:
            raise RemoteModelError(f"OpenRouter request failed: {exc}", model=model) from exc

        duration_ms = (monotonic() - started) * 1000
        content = None
        if response.choices:
            content = response.choices[0].message.content
        if not content or not content.strip():
            raise RemoteModelError("OpenRouter returned no content", model=model)

        logger.debug(f"OpenRouter model={model} answered in {duration_ms:.0f}ms")
        return content

    async def complete_with_fallback(
        self,
        system: str,
        user: str,
        temperature: float,
        *,
        primary_model: str,
        tag: str,
    ) -> str:
        """Try the primary model, then the free-tier fallback model.

        A rate-limited primary waits ``rate_limit_backoff`` seconds before the
        fallback request. Raises RemoteModelError when both fail.
        """
        fallback_model = self.settings.fallback_model
        try:
            return await self.complete(primary_model, system, user, temperature)
        except RemoteModelError as exc:
            logger.warning(
                f"[{tag}] Primary model {primary_model} failed (status={exc.status}): {exc}. "
                f"Falling back to {fallback_model}"
            )
            if exc.rate_limited and self.settings.rate_limit_backoff > 0:
                logger.info(
                    f"[{tag}] Rate limited, waiting {self.settings.rate_limit_backoff:.1f}s "
                    "before fallback"
                )
                await self._backoff(self.settings.rate_limit_backoff)

        try:
            return await self.complete(fallback_model, system, user, temperature)
        except RemoteModelError as exc:
            logger.error(
                f"[{tag}] Fallback model {fallback_model} failed (status={exc.status}): {exc}"
            )
            raise

    async def _backoff(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
        elif self._http_client is not None and not self._http_client.is_closed:
            await self._http_client.aclose()
