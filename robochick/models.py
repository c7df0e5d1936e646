"""Shared Pydantic data models for robochick."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from robochick.messages.composer import render_scenario

# --- Enums ---


class AuditEventType(str, Enum):
    SIGNATURE_FAILURE = "signature_failure"
    CHALLENGE = "challenge"
    NOTIFICATION = "notification"
    REVOCATION = "revocation"
    COMPOSITION_FAILURE = "composition_failure"
    CHAT_POST = "chat_post"
    REPLAY_REJECTED = "replay_rejected"
    REJECTED = "rejected"


class RiskLevel(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


# --- Message bank models ---


class Scenario(BaseModel):
    """A message template with two disjoint groups of named placeholders."""

    model_config = ConfigDict(frozen=True)

    template: str
    winners: list[str] = Field(default_factory=list)
    others: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _placeholders_unique(self) -> Scenario:
        names = [*self.winners, *self.others]
        if len(names) != len(set(names)):
            raise ValueError(f"placeholder names must be unique: {names}")
        return self

    @property
    def slots(self) -> int:
        return len(self.winners) + len(self.others)

    def build(self, winners: list[str], others: list[str]) -> str:
        """Substitute drawn names into the template by position."""
        return render_scenario(self, winners, others)


class MessageTemplateBank(BaseModel):
    model_config = ConfigDict(frozen=True)

    scenarios: list[Scenario]
    mods: list[str]

    @field_validator("mods")
    @classmethod
    def _collapse_duplicates(cls, mods: list[str]) -> list[str]:
        return list(dict.fromkeys(mods))


# --- Audit Models ---


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class AuditEvent(BaseModel):
    timestamp: str = Field(default_factory=_now_iso)
    event_type: AuditEventType
    message_id: str | None = None
    subscription_type: str | None = None
    action: str
    result: str  # "success" | "failure" | "rejected" | "ignored"
    risk_level: RiskLevel
    details: dict[str, object] | None = None
