"""OpenRouter chat client used as the external condensation capability."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from bookcondense.condensation.config import CondenserSettings

DEFAULT_TEMPERATURE = 0.3
DEFAULT_MAX_TOKENS = 1_024


@dataclass(slots=True)
class CondensationRequestError(RuntimeError):
    """Domain error raised for failed condensation requests or invalid responses."""

    model: str
    message: str

    def __str__(self) -> str:
        return f"{self.message} (model={self.model})"


def _build_default_client(settings: CondenserSettings) -> Any:
    try:
        from openai import AsyncOpenAI
    except Exception as exc:  # pragma: no cover - environment-dependent
        raise CondensationRequestError(
            model=settings.model,
            message=f"OpenAI SDK unavailable for OpenRouter client: {exc}",
        ) from exc

    return AsyncOpenAI(api_key=settings.api_key, base_url=settings.base_url)


def _extract_content(response: Any, *, model: str) -> str:
    choices = getattr(response, "choices", None)
    if not isinstance(choices, list) or not choices:
        raise CondensationRequestError(model=model, message="Condensation response missing choices")

    first = choices[0]
    message = getattr(first, "message", None)
    content = getattr(message, "content", None) if message is not None else None
    if content is None and isinstance(first, dict):
        message_dict = first.get("message", {})
        if isinstance(message_dict, dict):
            content = message_dict.get("content")

    if isinstance(content, list):
        content = "".join(str(part.get("text", "")) for part in content if isinstance(part, dict))

    return str(content or "").strip()


class OpenRouterCondenser:
    """Send one condensation prompt per call and return the raw passage text.

    Empty passages are returned as ``""``; deciding whether that is an error
    belongs to the caller.
    """

    def __init__(
        self,
        settings: CondenserSettings,
        *,
        client: Any | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> None:
        if max_tokens < 1:
            raise ValueError("max_tokens must be >= 1")

        self._settings = settings
        self._client = client or _build_default_client(settings)
        self._temperature = temperature
        self._max_tokens = max_tokens

    @property
    def model(self) -> str:
        return self._settings.model

    async def condense_text(self, *, prompt: str) -> str:
        prompt_text = prompt.strip()
        if not prompt_text:
            raise ValueError("prompt cannot be empty")

        try:
            response = await self._client.chat.completions.create(
                model=self._settings.model,
                messages=[{"role": "user", "content": prompt_text}],
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )
        except Exception as exc:
            raise CondensationRequestError(
                model=self._settings.model,
                message=f"Condensation request failed: {exc}",
            ) from exc

        return _extract_content(response, model=self._settings.model)
