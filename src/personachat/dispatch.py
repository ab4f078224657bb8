"""
Scheduled persona message dispatch.

An external trigger calls ``DispatchScheduler.run_dispatch_tick(now)`` once
an hour. Each tick walks every active persona, decides from its message
frequency whether it should reach out at ``now``, and if so generates a
message, records it in the conversation ledger, meters the owner's quota
and mirrors it to WhatsApp when enabled.

A failure while handling one persona is logged and skipped; it never stops
the remaining personas. Only failing to list personas at all aborts a tick.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .config import settings
from .core.exceptions import (
    CapabilityTimeoutError,
    CircuitBreakerOpen,
    GenerationQuotaExceeded,
    GenerationUnavailable,
    StorageUnavailableError,
)
from .core.resilience import CircuitBreaker, CircuitBreakerConfig, call_with_timeout
from .database import Message, Persona, get_session
from .delivery import DeliveryChannel
from .generation import ContentGenerator, fallback_message
from .repositories import PersonaRepository
from .schemas.chat import VoiceClip
from .schemas.persona import MessageFrequency
from .services import ConversationLedger, UsageTracker

logger = logging.getLogger(__name__)

# Generation failures that degrade to template text instead of failing the persona
FALLBACK_ERRORS = (
    GenerationUnavailable,
    GenerationQuotaExceeded,
    CapabilityTimeoutError,
    CircuitBreakerOpen,
)


def is_eligible(
    frequency: str,
    now: datetime,
    send_hour: Optional[int] = None,
    weekly_weekday: Optional[int] = None,
) -> bool:
    """
    Whether a persona with ``frequency`` should send a message at tick ``now``.

    - never: not eligible
    - often: every tick
    - daily: the tick whose hour is ``send_hour``
    - weekly: the ``send_hour`` tick on ``weekly_weekday`` (0 = Monday)

    Hour and weekday default to the configured dispatch policy. Unknown
    frequencies are treated as never.
    """
    if send_hour is None:
        send_hour = settings.DISPATCH_SEND_HOUR
    if weekly_weekday is None:
        weekly_weekday = settings.DISPATCH_WEEKLY_WEEKDAY

    try:
        frequency = MessageFrequency(frequency)
    except ValueError:
        return False

    if frequency == MessageFrequency.OFTEN:
        return True
    if frequency == MessageFrequency.DAILY:
        return now.hour == send_hour
    if frequency == MessageFrequency.WEEKLY:
        return now.weekday() == weekly_weekday and now.hour == send_hour
    return False


@dataclass
class TickReport:
    """What one dispatch tick did."""
    now: datetime
    considered: int = 0
    eligible: int = 0
    sent: List[int] = field(default_factory=list)
    relayed: List[int] = field(default_factory=list)
    quota_skipped: List[int] = field(default_factory=list)
    fallback_used: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)

    def summary(self) -> dict:
        return {
            "now": self.now.isoformat(),
            "considered": self.considered,
            "eligible": self.eligible,
            "sent": len(self.sent),
            "relayed": len(self.relayed),
            "quota_skipped": len(self.quota_skipped),
            "fallback_used": len(self.fallback_used),
            "failed": len(self.failed),
        }


class DispatchScheduler:
    """
    Drives proactive persona messages, one tick at a time.

    Never reads the wall clock for eligibility: ``now`` is always passed in.
    Eligibility uses ``now`` as wall-clock time in ``zone``; timestamps are
    written to the ledger in UTC, the same clock the chat path uses.
    Holds no transaction open across generation, voice or delivery calls.
    """

    def __init__(
        self,
        generator: ContentGenerator,
        channel: DeliveryChannel,
        session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
        ledger: Optional[ConversationLedger] = None,
        usage: Optional[UsageTracker] = None,
        send_hour: Optional[int] = None,
        weekly_weekday: Optional[int] = None,
        generation_timeout: Optional[float] = None,
        voice_timeout: Optional[float] = None,
        delivery_timeout: Optional[float] = None,
        breaker: Optional[CircuitBreaker] = None,
        zone: Optional[str] = None,
    ):
        self.generator = generator
        self.channel = channel
        self._session_maker = session_maker
        self.ledger = ledger or ConversationLedger(session_maker)
        self.usage = usage or UsageTracker(session_maker)
        self.send_hour = settings.DISPATCH_SEND_HOUR if send_hour is None else send_hour
        self.weekly_weekday = (
            settings.DISPATCH_WEEKLY_WEEKDAY if weekly_weekday is None else weekly_weekday
        )
        self.generation_timeout = (
            settings.GENERATION_TIMEOUT if generation_timeout is None else generation_timeout
        )
        self.voice_timeout = settings.VOICE_TIMEOUT if voice_timeout is None else voice_timeout
        self.delivery_timeout = (
            settings.DELIVERY_TIMEOUT if delivery_timeout is None else delivery_timeout
        )
        self.zone = ZoneInfo(zone or settings.TIMEZONE)
        self.breaker = breaker or CircuitBreaker(CircuitBreakerConfig(
            name="generation",
            failure_threshold=settings.GENERATION_FAILURE_THRESHOLD,
            recovery_timeout=settings.GENERATION_RECOVERY_TIMEOUT,
        ))

    def is_eligible(self, persona: Persona, now: datetime) -> bool:
        return is_eligible(
            persona.message_frequency, now,
            send_hour=self.send_hour, weekly_weekday=self.weekly_weekday,
        )

    def local_time(self, now: datetime) -> datetime:
        """Naive wall-clock time in the dispatch zone. Naive input is already local."""
        if now.tzinfo is None:
            return now
        return now.astimezone(self.zone).replace(tzinfo=None)

    def storage_time(self, now: datetime) -> datetime:
        """Naive UTC timestamp for the ledger."""
        if now.tzinfo is None:
            now = now.replace(tzinfo=self.zone)
        return now.astimezone(timezone.utc).replace(tzinfo=None)

    async def run_dispatch_tick(self, now: datetime) -> TickReport:
        """
        Run one dispatch tick for the given time.

        Raises:
            StorageUnavailableError: If active personas cannot be listed
        """
        stored_at = self.storage_time(now)
        now = self.local_time(now)

        try:
            personas = await self._load_active_personas()
        except SQLAlchemyError as exc:
            logger.critical(f"Dispatch tick {now.isoformat()} aborted: {exc}", exc_info=True)
            raise StorageUnavailableError(str(exc)) from exc

        report = TickReport(now=now, considered=len(personas))
        for persona in personas:
            if not self.is_eligible(persona, now):
                continue
            report.eligible += 1

            try:
                await self._dispatch_persona(persona, now, stored_at, report)
            except Exception:
                logger.error(
                    f"Scheduled message for persona {persona.id} failed", exc_info=True
                )
                report.failed.append(persona.id)

        logger.info(f"Dispatch tick complete: {report.summary()}")
        return report

    async def _load_active_personas(self) -> List[Persona]:
        async with get_session(self._session_maker) as session:
            return await PersonaRepository(Persona, session).get_active_personas()

    async def _dispatch_persona(
        self, persona: Persona, now: datetime, stored_at: datetime, report: TickReport
    ) -> None:
        conversation = await self.ledger.get_or_create_conversation(persona.user_id, persona.id)

        if not await self.usage.check_quota(persona.user_id):
            logger.info(
                f"Skipping persona {persona.id}: user {persona.user_id} is out of quota"
            )
            report.quota_skipped.append(persona.id)
            return

        history = await self.ledger.list_messages(conversation.id)
        text, generated = await self._generate_text(persona, history, now)
        if generated:
            await self.usage.increment_usage(persona.user_id, 1)
        else:
            report.fallback_used.append(persona.id)

        voice = await self._synthesize_voice(text, persona)

        message = await self.ledger.append_message(
            conversation.id, text, is_from_persona=True, voice=voice, sent_at=stored_at
        )
        await self.ledger.touch_last_message(conversation.id, at=message.sent_at)
        report.sent.append(persona.id)
        logger.info(f"Scheduled message {message.id} sent from {persona.name} ({persona.id})")

        if persona.whatsapp_enabled and persona.whatsapp_number:
            relayed = await call_with_timeout(
                "delivery", self.channel.relay, persona.whatsapp_number, text,
                timeout=self.delivery_timeout,
            )
            if relayed:
                await self.ledger.mark_delivered(message.id)
                report.relayed.append(persona.id)

    async def _generate_text(
        self, persona: Persona, history: Sequence[Message], now: datetime
    ) -> Tuple[str, bool]:
        """Model text, or template text when the model is unavailable. Second item: model used."""
        try:
            text = await self.breaker.call(
                call_with_timeout, "generation",
                self.generator.generate_proactive_message, persona, history,
                timeout=self.generation_timeout,
            )
        except FALLBACK_ERRORS as exc:
            logger.warning(f"Using fallback message for persona {persona.id}: {exc}")
            return fallback_message(persona, now=now), False
        return text, True

    async def _synthesize_voice(self, text: str, persona: Persona) -> Optional[VoiceClip]:
        """Best effort; any failure means a text-only message."""
        try:
            return await call_with_timeout(
                "voice", self.generator.synthesize_voice, text, persona,
                timeout=self.voice_timeout,
            )
        except Exception as exc:
            logger.warning(f"Voice synthesis failed for persona {persona.id}: {exc}")
            return None
