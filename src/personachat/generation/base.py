"""Content generator interface."""

from typing import Optional, Protocol, Sequence

from ..database import Message, Persona
from ..schemas.chat import VoiceClip


class ContentGenerator(Protocol):
    """
    Produces persona message text and optional voice renderings.

    Text generation raises GenerationUnavailable or GenerationQuotaExceeded
    when the model cannot be used; callers fall back to templates.
    """

    async def generate_proactive_message(
        self, persona: Persona, history: Sequence[Message]
    ) -> str:
        """Write an unprompted message from the persona."""
        ...

    async def generate_reply(
        self, persona: Persona, history: Sequence[Message], user_message: str
    ) -> str:
        """Write the persona's reply to the user's latest message."""
        ...

    async def synthesize_voice(self, text: str, persona: Persona) -> Optional[VoiceClip]:
        """Render text as audio. None when voice is disabled."""
        ...
