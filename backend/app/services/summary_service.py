import logging
from typing import Any, Dict, List

from app.repositories.message_repository import MessageRepository
from app.utils.errors import NotFoundError
from app.utils.summarizer import OpenAISummarizer


logger = logging.getLogger(__name__)

MEDIA_PLACEHOLDER = "[Image/Media]"


def render_transcript(messages: List[Dict[str, Any]], requester_id: str) -> str:
    """Render chronological messages as ``You: ...`` / ``Friend: ...`` lines."""
    lines = []
    for msg in messages:
        speaker = "You" if str(msg["sender_id"]) == str(requester_id) else "Friend"
        lines.append(f"{speaker}: {msg.get('text') or MEDIA_PLACEHOLDER}")
    return "\n".join(lines)


class SummaryService:

    def __init__(
        self,
        message_repo: MessageRepository,
        summarizer: OpenAISummarizer,
        prompt_template: str,
        window: int = 100,
    ) -> None:
        self._message_repo = message_repo
        self._summarizer = summarizer
        self._prompt_template = prompt_template
        self._window = window

    def build_prompt(self, transcript: str) -> str:
        return self._prompt_template.replace("{transcript}", transcript)

    async def summarize(self, requester_id: str, other_id: str) -> str:
        recent = await self._message_repo.list_recent(requester_id, other_id, limit=self._window)
        if not recent:
            raise NotFoundError("No messages to summarize")
        transcript = render_transcript(list(reversed(recent)), requester_id)
        logger.info("Summarizing %d messages between %s and %s", len(recent), requester_id, other_id)
        return await self._summarizer.summarize(self.build_prompt(transcript))
