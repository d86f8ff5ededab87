"""
Deduplicating Notifier.

Fans lifecycle events out to recipients with at-most-once delivery per
(recipient, alert_type, reference):

1. Record the triple in sent_alerts (insert-if-absent) and commit.
2. A conflict means the recipient was already notified -> SKIPPED.
3. Only a committed record is followed by a delivery attempt.
4. A failed delivery is logged and NOT retried; the record stays.

Record-then-send trades a possible lost message for never sending twice.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Protocol, Sequence

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from statuspulse.core.config import get_settings
from statuspulse.core.database import insert_ignore, utcnow
from statuspulse.core.exceptions import DeliveryFailed
from statuspulse.events.schemas import BaseEvent
from statuspulse.models.alert_orm import SentAlertORM
from statuspulse.services.recipients import GuildRecipient, Recipient, RecipientRepository

logger = logging.getLogger(__name__)


class NotifyOutcome(str, Enum):
    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class NotifyResult:
    recipient: Recipient
    outcome: NotifyOutcome
    error: Optional[str] = None


class DeliveryChannel(Protocol):
    async def deliver(self, recipient: Recipient, event: BaseEvent) -> None:
        """Deliver one event to one recipient or raise DeliveryFailed."""
        ...


def render_envelope(recipient: Recipient, event: BaseEvent) -> dict:
    target = {"kind": recipient.kind, "key": recipient.ledger_key}
    if isinstance(recipient, GuildRecipient):
        target["guild_id"] = recipient.guild_id
        target["channel_id"] = recipient.channel_id
    else:
        target["user_id"] = recipient.user_id
    return {"recipient": target, "event": event.model_dump(mode="json")}


class LogDeliveryChannel:
    """Writes each delivery to the application log. Used when no webhook is configured."""

    async def deliver(self, recipient: Recipient, event: BaseEvent) -> None:
        logger.info(
            f"Delivered {event.alert_type} ({event.reference}) to {recipient.ledger_key}",
            extra={"extra_data": render_envelope(recipient, event)},
        )


class WebhookDeliveryChannel:
    """POSTs a JSON envelope per delivery; the receiver renders it for the chat platform."""

    def __init__(self, http_client: httpx.AsyncClient, url: str):
        self.http_client = http_client
        self.url = url

    async def deliver(self, recipient: Recipient, event: BaseEvent) -> None:
        try:
            resp = await self.http_client.post(
                self.url,
                json=render_envelope(recipient, event),
                timeout=get_settings().delivery_timeout_seconds,
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise DeliveryFailed(recipient.ledger_key, f"HTTP {e.response.status_code}") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise DeliveryFailed(recipient.ledger_key, f"{type(e).__name__}: {e}") from e


def _ledger_values(recipient: Recipient, event: BaseEvent) -> dict:
    is_guild = isinstance(recipient, GuildRecipient)
    return {
        "recipient_key": recipient.ledger_key,
        "guild_id": recipient.guild_id if is_guild else None,
        "user_id": None if is_guild else recipient.user_id,
        "alert_type": event.alert_type,
        "reference_id": event.reference,
        "notified_at": utcnow(),
    }


class Notifier:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        channel: Optional[DeliveryChannel] = None,
    ):
        self.session_factory = session_factory
        self.channel = channel or LogDeliveryChannel()

    async def _record(self, recipient: Recipient, event: BaseEvent) -> bool:
        """Insert the ledger row and commit. True only when this call created it."""
        async with self.session_factory() as session:
            try:
                result = await session.execute(
                    insert_ignore(
                        session,
                        SentAlertORM.__table__,
                        _ledger_values(recipient, event),
                        ["recipient_key", "alert_type", "reference_id"],
                    )
                )
                inserted = bool(result.rowcount)
                await session.commit()
            except Exception:
                await session.rollback()
                raise
        return inserted

    async def notify(self, event: BaseEvent, recipients: Sequence[Recipient]) -> List[NotifyResult]:
        results: List[NotifyResult] = []
        for recipient in recipients:
            try:
                recorded = await self._record(recipient, event)
            except SQLAlchemyError as e:
                # Unrecorded alerts are never sent
                logger.error(
                    f"Ledger write failed for {recipient.ledger_key} "
                    f"({event.alert_type}/{event.reference}), not sending: {e}"
                )
                results.append(NotifyResult(recipient, NotifyOutcome.SKIPPED, error=str(e)))
                continue

            if not recorded:
                logger.debug(f"Already notified {recipient.ledger_key} of {event.alert_type}/{event.reference}")
                results.append(NotifyResult(recipient, NotifyOutcome.SKIPPED))
                continue

            try:
                await self.channel.deliver(recipient, event)
            except DeliveryFailed as e:
                logger.warning(f"Delivery failed, not retrying: {e}")
                results.append(NotifyResult(recipient, NotifyOutcome.FAILED, error=str(e)))
                continue
            except Exception as e:
                # A broken channel must not cut the fan-out short
                logger.error(
                    f"Unexpected delivery error for {recipient.ledger_key} "
                    f"({event.alert_type}/{event.reference}), not retrying: {e}",
                    exc_info=True,
                )
                results.append(NotifyResult(recipient, NotifyOutcome.FAILED, error=f"{type(e).__name__}: {e}"))
                continue

            results.append(NotifyResult(recipient, NotifyOutcome.SENT))

        sent = sum(1 for r in results if r.outcome == NotifyOutcome.SENT)
        if sent:
            logger.info(f"Notified {sent}/{len(results)} recipients of {event.alert_type} ({event.reference})")
        return results

    async def recipients(self) -> List[Recipient]:
        async with self.session_factory() as session:
            return await RecipientRepository(session).list_enabled()

    async def broadcast(self, events: Iterable[BaseEvent]) -> List[NotifyResult]:
        """Notify every currently enabled recipient of each event."""
        events = list(events)
        if not events:
            return []
        recipients = await self.recipients()
        if not recipients:
            logger.info(f"No enabled recipients, dropping {len(events)} events")
            return []

        results: List[NotifyResult] = []
        for event in events:
            results.extend(await self.notify(event, recipients))
        return results
