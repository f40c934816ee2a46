from dataclasses import dataclass

from sanic.log import logger

from build_relay import metrics
from build_relay.chat import ChatWebhook
from build_relay.cloudbuild import CloudBuild, resolve_trigger
from build_relay.decoder import SKIPPED_STATUSES, decode_build_event, should_notify
from build_relay.exceptions import DecodeError, TriggerLookupError
from build_relay.formatter import format_message
from build_relay.models import PubSubMessage


@dataclass(frozen=True)
class Notifier:
    """Process-wide handles used to turn one build event into one chat message."""

    cloud_build: CloudBuild
    webhook: ChatWebhook
    lookup_fatal: bool = True

    async def handle(self, message: PubSubMessage) -> bool:
        """Handle one Pub/Sub message.

        Returns True when a notification was posted and False when the event
        was skipped. Errors propagate and abort the invocation.
        """
        with metrics.track_event_processing():
            try:
                event = decode_build_event(message)
            except DecodeError as e:
                metrics.errors_total.labels("decode", type(e).__name__).inc()
                raise

            metrics.events_received_total.labels(
                metrics.status_label(event.status)
            ).inc()

            if not should_notify(event):
                reason = "queued" if event.status in SKIPPED_STATUSES else "no_trigger"
                metrics.events_skipped_total.labels(reason).inc()
                logger.info(
                    "Skipping build %s (status %s, trigger %s)",
                    event.build_id,
                    event.status,
                    event.trigger_id,
                )
                return False

            try:
                trigger = await resolve_trigger(
                    self.cloud_build, event.project_id, event.trigger_id
                )
            except TriggerLookupError as e:
                if self.lookup_fatal:
                    raise
                logger.warning(
                    "Trigger lookup failed for build %s, sending without trigger details: %s",
                    event.build_id,
                    e,
                )
                trigger = None

            await self.webhook.send(format_message(event, trigger))
            logger.info(
                "Sent notification for build %s (status %s)",
                event.build_id,
                event.status,
            )
            return True
