"""
Evaluator interface

Each notification type has one Evaluator. At fire time the scheduler
hands it an EvaluationContext and gets back an EvaluationResult: either a
payload to send or a reason for not sending. Evaluators never raise for
expected conditions such as missing data, threshold misses or cooldowns.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar

from hobbyweather.notifications.models import NotificationConfig, NotificationPayload, NotificationType
from hobbyweather.notifications.store import NotificationStore


@dataclass
class EvaluationContext:
    """Everything an evaluator may consult for one firing."""

    config: NotificationConfig
    now: datetime
    store: NotificationStore


@dataclass
class EvaluationResult:
    should_notify: bool
    payload: NotificationPayload | None = None
    reason: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def skip(cls, reason: str, **details: Any) -> "EvaluationResult":
        return cls(should_notify=False, reason=reason, details=details)

    @classmethod
    def notify(cls, payload: NotificationPayload, **details: Any) -> "EvaluationResult":
        return cls(should_notify=True, payload=payload, details=details)

    def to_dict(self) -> dict[str, Any]:
        return {
            "should_notify": self.should_notify,
            "reason": self.reason,
            "payload": self.payload.to_dict() if self.payload else None,
            "details": self.details,
        }


class Evaluator(ABC):
    """Decides whether one notification family should fire."""

    notification_type: ClassVar[NotificationType]

    @abstractmethod
    async def evaluate(self, context: EvaluationContext) -> EvaluationResult: ...
