"""Price alert domain models."""

from dataclasses import dataclass
from enum import Enum


class AlertOutcome(str, Enum):
    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"


class SkipReason(str, Enum):
    DUPLICATE_PRICE = "duplicate_price"
    BELOW_THRESHOLD = "below_threshold"
    TOO_SOON = "too_soon"
    USER_DISABLED_ALERTS = "user_disabled_alerts"


class Channel(str, Enum):
    EMAIL = "email"
    WHATSAPP = "whatsapp"


@dataclass
class AlertRecord:
    """One entry of the append-only alert log."""

    alert_id: str
    subject_id: str
    recipient_id: str
    price_at_send: float
    outcome: AlertOutcome
    created_at: int
    skip_reason: SkipReason | None = None
    discount_percentage: int | None = None
    channel: Channel = Channel.EMAIL
    message_id: str | None = None
    error: str | None = None
    attempt: int = 1


@dataclass
class SubjectState:
    """Snapshot of a tracked product at evaluation time."""

    subject_id: str
    name: str
    current_price: float
    original_price: float
    notification_threshold: float | None = None
    last_notified_price: float | None = None
    product_url: str = ""
    image_url: str | None = None


@dataclass
class Recipient:
    recipient_id: str
    name: str
    email: str
    language: str = "en"
    phone: str | None = None
    price_alerts_enabled: bool = True
    whatsapp_enabled: bool = False


@dataclass
class AlertCandidate:
    """A notification attempt about to be gated."""

    subject_id: str
    recipient: Recipient
    now: int
    attempt: int = 1
    force_send: bool = False
