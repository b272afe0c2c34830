"""NATS messaging helpers for LifeSync."""

from lifesync.messaging.client import NatsConnection
from lifesync.messaging.subjects import Subjects

__all__ = ["NatsConnection", "Subjects"]
