"""Chat-completions client for an OpenAI-compatible endpoint."""

from typing import Any, Optional

import httpx
import structlog

from ..config import Settings

logger = structlog.get_logger()


class CompletionError(Exception):
    """Raised when the completion endpoint cannot produce a usable response."""


def extract_reply(data: Any) -> Optional[str]:
    """Return the first choice's trimmed content, or None when absent or blank."""
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return None
    if not isinstance(content, str):
        return None
    return content.strip() or None


class LLMService:
    """Sends single-turn prompts to the chat-completions API."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        base_url: str,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> None:
        self.model = model
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport
        )
        logger.info("llm_service_init", model=model, base_url=base_url, has_api_key=bool(api_key))

    @classmethod
    def from_settings(cls, settings: Settings) -> "LLMService":
        return cls(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            base_url=settings.openai_base_url,
            timeout=settings.request_timeout
        )

    async def complete(self, prompt: str) -> Optional[str]:
        """
        Send one user-role message and return the reply text.

        Returns None when the response carries no reply content. Transport
        failures, error statuses and undecodable bodies raise CompletionError.
        """
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}]
        }
        try:
            response = await self._client.post("/chat/completions", json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise CompletionError(f"Completion request failed: {e}") from e
        except ValueError as e:
            raise CompletionError(f"Completion response is not JSON: {e}") from e

        reply = extract_reply(data)
        if reply is None:
            logger.warning("completion_reply_missing", model=self.model)
        return reply

    async def aclose(self) -> None:
        await self._client.aclose()
