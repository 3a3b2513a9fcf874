"""
Delivery state tracking for outbound email.

Every webhook event is appended to ``webhook_events``; the matching
``outbound_emails`` row (if any) gets the first-occurrence timestamp for the
event type and its ``status`` moved to the event type. Webhook delivery order
is not guaranteed, so any event is accepted in any state.
"""
import enum
import json
import logging
from typing import Any, Dict, List, Mapping, Optional

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError

from inbounder.extensions import db
from inbounder.models import OutboundEmail, WebhookEventLog
from inbounder.models.outbound_email import STATUS_CHOICES, STATUS_SENT
from inbounder.utils.helpers import from_unix, utcnow

logger = logging.getLogger(__name__)

EVENT_TIMESTAMP_FIELDS = {
    "accepted": "accepted_at",
    "delivered": "delivered_at",
    "opened": "opened_at",
    "clicked": "clicked_at",
    "bounced": "bounced_at",
    "complained": "complained_at",
    "unsubscribed": "unsubscribed_at",
    "failed": "failed_at",
}

# Legacy (v2 webhook) and provider-specific spellings
EVENT_ALIASES = {
    "bounce": "bounced",
    "complaint": "complained",
    "dropped": "failed",
    "open": "opened",
    "click": "clicked",
    "unsubscribe": "unsubscribed",
}

# Funnel metrics reported by the stats queries
TRACKED_EVENTS = ("delivered", "opened", "clicked", "bounced", "complained", "unsubscribed", "failed")

_SEND_ATTRS = ("from_address", "from_name", "subject", "template_name", "campaign_id", "user_id")

_LOG_ATTRS = (
    "domain", "ip", "country", "region", "city", "user_agent", "device_type",
    "client_type", "client_name", "client_os", "reason", "code", "error",
    "severity", "tags", "user_variables",
)


class TrackerErrorKind(enum.Enum):
    DUPLICATE_MESSAGE_ID = "duplicate_message_id"


class TrackerError(Exception):
    def __init__(self, kind: TrackerErrorKind, message: str):
        self.kind = kind
        super().__init__(message)


def normalize_event_type(event_type: Optional[str]) -> str:
    et = (event_type or "").strip().lower()
    return EVENT_ALIASES.get(et, et)


def _jsonable(data: Mapping[str, Any]) -> Dict[str, Any]:
    return json.loads(json.dumps(data, default=str))


def _fit_log_column(name: str, value: Any) -> Any:
    """Clip provider strings to the WebhookEventLog column width."""
    if not isinstance(value, str):
        return value
    length = getattr(WebhookEventLog.__table__.c[name].type, "length", None)
    return value[:length] if length else value


def _pct(part: int, whole: int) -> float:
    return (part / whole) * 100 if whole > 0 else 0


class DeliveryStateTracker:
    def __init__(self, session=None):
        self.session = session or db.session

    # ---- writes -----------------------------------------------------------

    def record_send(self, message_id: str, recipient: str, **attrs: Any) -> OutboundEmail:
        """Create the tracking row for a freshly dispatched message (status=sent)."""
        if self.get_by_message_id(message_id) is not None:
            raise TrackerError(TrackerErrorKind.DUPLICATE_MESSAGE_ID, f"Message id already tracked: {message_id}")

        email = OutboundEmail(
            message_id=message_id,
            recipient=recipient,
            meta=attrs.get("metadata"),
            status=STATUS_SENT,
            sent_at=utcnow(),
            **{k: (str(attrs[k]) if attrs.get(k) is not None else None) for k in _SEND_ATTRS},
        )
        self.session.add(email)
        try:
            self.session.commit()
        except IntegrityError:
            # lost a race against a concurrent record_send
            self.session.rollback()
            raise TrackerError(TrackerErrorKind.DUPLICATE_MESSAGE_ID, f"Message id already tracked: {message_id}")

        logger.info("Tracking outbound email %s to %s", message_id, recipient)
        return email

    def apply_event(
        self,
        message_id: Optional[str],
        event_type: str,
        event_attrs: Optional[Mapping[str, Any]] = None,
    ) -> Optional[OutboundEmail]:
        """
        Log the event, then move the matching OutboundEmail (if tracked).

        Returns the updated record, or None when ``message_id`` is unknown.
        Replays of an event never overwrite its first-occurrence timestamp.
        """
        attrs = dict(event_attrs or {})
        event_type = normalize_event_type(event_type)
        occurred_at = from_unix(attrs.get("timestamp"))

        self.session.add(
            WebhookEventLog(
                event=_fit_log_column("event", event_type),
                message_id=_fit_log_column("message_id", message_id),
                recipient=_fit_log_column("recipient", attrs.get("recipient")),
                event_timestamp=occurred_at,
                raw_data=attrs.get("raw") or _jsonable({k: v for k, v in attrs.items() if k != "raw"}),
                **{k: _fit_log_column(k, attrs.get(k)) for k in _LOG_ATTRS},
            )
        )

        email = self.get_by_message_id(message_id) if message_id else None
        if email is None:
            self.session.commit()
            logger.info("Event %s for untracked message %s logged only", event_type, message_id)
            return None

        field = EVENT_TIMESTAMP_FIELDS.get(event_type)
        if field is None:
            self.session.commit()
            logger.info("Ignoring unrecognized event type %r for %s", event_type, message_id)
            return email

        column = getattr(OutboundEmail, field)
        # Conditional update: concurrent replays cannot overwrite the first occurrence
        self.session.execute(
            sa.update(OutboundEmail)
            .where(OutboundEmail.message_id == message_id, column.is_(None))
            .values({field: occurred_at or utcnow()})
            .execution_options(synchronize_session=False)
        )
        if event_type in STATUS_CHOICES:
            self.session.execute(
                sa.update(OutboundEmail)
                .where(OutboundEmail.message_id == message_id)
                .values(status=event_type)
                .execution_options(synchronize_session=False)
            )
        self.session.commit()
        self.session.refresh(email)

        logger.info("Outbound email %s -> %s", message_id, email.status)
        return email

    # ---- lookups ----------------------------------------------------------

    def get_by_message_id(self, message_id: str) -> Optional[OutboundEmail]:
        return self.session.query(OutboundEmail).filter(OutboundEmail.message_id == message_id).one_or_none()

    def get_by_recipient(self, recipient: str, limit: int = 50) -> List[OutboundEmail]:
        return self._recent(OutboundEmail.recipient == recipient, limit)

    def get_by_campaign(self, campaign_id: str, limit: int = 100) -> List[OutboundEmail]:
        return self._recent(OutboundEmail.campaign_id == campaign_id, limit)

    def get_by_user(self, user_id: str, limit: int = 50) -> List[OutboundEmail]:
        return self._recent(OutboundEmail.user_id == user_id, limit)

    def _recent(self, criterion, limit: int) -> List[OutboundEmail]:
        return (
            self.session.query(OutboundEmail)
            .filter(criterion)
            .order_by(OutboundEmail.sent_at.desc(), OutboundEmail.id.desc())
            .limit(limit)
            .all()
        )

    # ---- aggregation ------------------------------------------------------

    def cumulative_campaign_stats(self, campaign_id: str) -> Dict[str, int]:
        return self._cumulative_stats(OutboundEmail.campaign_id == campaign_id)

    def cumulative_user_stats(self, user_id: str) -> Dict[str, int]:
        return self._cumulative_stats(OutboundEmail.user_id == user_id)

    def _cumulative_stats(self, criterion) -> Dict[str, int]:
        """Emails that ever reached each event, from the event log (distinct per message)."""
        message_ids = sa.select(OutboundEmail.message_id).where(criterion)
        total_sent = self.session.execute(
            sa.select(sa.func.count()).select_from(OutboundEmail).where(criterion)
        ).scalar_one()

        rows = self.session.execute(
            sa.select(WebhookEventLog.event, sa.func.count(sa.distinct(WebhookEventLog.message_id)))
            .where(WebhookEventLog.message_id.in_(message_ids))
            .group_by(WebhookEventLog.event)
        ).all()
        by_event = {event: count for event, count in rows}

        stats = {"total_sent": total_sent}
        for event in TRACKED_EVENTS:
            stats[event] = by_event.get(event, 0)
        return stats

    def campaign_stats(self, campaign_id: str) -> Dict[str, Any]:
        return self._snapshot_stats(OutboundEmail.campaign_id == campaign_id)

    def user_stats(self, user_id: str) -> Dict[str, Any]:
        return self._snapshot_stats(OutboundEmail.user_id == user_id)

    def _snapshot_stats(self, criterion) -> Dict[str, Any]:
        """Counts by *current* status, with funnel rates in percent."""
        rows = self.session.execute(
            sa.select(OutboundEmail.status, sa.func.count())
            .where(criterion)
            .group_by(OutboundEmail.status)
        ).all()
        by_status = {status: count for status, count in rows}
        total = sum(by_status.values())

        stats: Dict[str, Any] = {"total_sent": total}
        for event in TRACKED_EVENTS:
            stats[event] = by_status.get(event, 0)
        stats["delivery_rate"] = _pct(stats["delivered"], total)
        stats["open_rate"] = _pct(stats["opened"], stats["delivered"])
        stats["click_rate"] = _pct(stats["clicked"], stats["opened"])
        return stats

    def event_counts(self, campaign_id: Optional[str] = None, user_id: Optional[str] = None) -> Dict[str, int]:
        """Raw log rows per event type (two opens of one email count twice)."""
        q = sa.select(WebhookEventLog.event, sa.func.count()).group_by(WebhookEventLog.event)
        if campaign_id is not None or user_id is not None:
            scope = sa.select(OutboundEmail.message_id)
            if campaign_id is not None:
                scope = scope.where(OutboundEmail.campaign_id == campaign_id)
            if user_id is not None:
                scope = scope.where(OutboundEmail.user_id == user_id)
            q = q.where(WebhookEventLog.message_id.in_(scope))
        return {event: count for event, count in self.session.execute(q).all()}
