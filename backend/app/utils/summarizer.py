import logging
from typing import Optional

from openai import AsyncOpenAI, OpenAIError

from app.core.config import settings
from app.utils.errors import SummarizationError


logger = logging.getLogger(__name__)


class OpenAISummarizer:

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str,
        model: str,
        temperature: float = 0.3,
        timeout: float = 30.0,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self._api_key = api_key
        self._base_url = base_url
        self._timeout = timeout
        self._client: Optional[AsyncOpenAI] = None

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._api_key, base_url=self._base_url, timeout=self._timeout)
        return self._client

    async def summarize(self, prompt: str) -> str:
        if not self._api_key:
            raise SummarizationError("Summarization engine is not configured")
        logger.debug("Requesting summary from %s (%d chars)", self.model, len(prompt))
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.temperature,
            )
        except OpenAIError as exc:
            raise SummarizationError(f"Summarization engine error: {exc}") from exc
        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError) as exc:
            raise SummarizationError("Malformed response from summarization engine") from exc
        if not content or not content.strip():
            raise SummarizationError("Summarization engine returned an empty summary")
        return content


_summarizer = None


def get_summarizer() -> OpenAISummarizer:
    global _summarizer
    if _summarizer is None:
        _summarizer = OpenAISummarizer(
            api_key=settings.OPENAI_API_KEY,
            base_url=settings.OPENAI_BASE_URL,
            model=settings.SUMMARY_MODEL,
            temperature=settings.SUMMARY_TEMPERATURE,
            timeout=settings.SUMMARY_TIMEOUT_SECONDS,
        )
    return _summarizer
