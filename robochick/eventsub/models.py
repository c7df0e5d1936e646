"""Data models for the Twitch EventSub webhook transport."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TypeVar

from pydantic import BaseModel, ValidationError

# Header names are compared lowercase; HTTP header names are case-insensitive.
MESSAGE_ID_HEADER = "twitch-eventsub-message-id"
MESSAGE_TIMESTAMP_HEADER = "twitch-eventsub-message-timestamp"
MESSAGE_SIGNATURE_HEADER = "twitch-eventsub-message-signature"
MESSAGE_TYPE_HEADER = "twitch-eventsub-message-type"
SUBSCRIPTION_TYPE_HEADER = "twitch-eventsub-subscription-type"

MESSAGE_TYPE_VERIFICATION = "webhook_callback_verification"
MESSAGE_TYPE_NOTIFICATION = "notification"
MESSAGE_TYPE_REVOCATION = "revocation"

REWARD_REDEMPTION_SUBSCRIPTION = "channel.channel_points_custom_reward_redemption.add"


class PayloadParseFailure(ValueError):
    """Raised when a webhook body does not match the expected JSON shape."""

    def __init__(self, model: str, detail: str) -> None:
        self.model = model
        super().__init__(f"Could not parse {model}: {detail}")


@dataclass
class WebhookEnvelope:
    """Header set and raw body of one inbound EventSub callback."""

    message_id: str | None
    timestamp: str | None
    signature: str | None
    message_type: str | None
    subscription_type: str | None
    body: bytes = b""

    @classmethod
    def from_request(cls, headers: Mapping[str, str], body: bytes) -> WebhookEnvelope:
        lowered = {k.lower(): v for k, v in headers.items()}
        return cls(
            message_id=lowered.get(MESSAGE_ID_HEADER),
            timestamp=lowered.get(MESSAGE_TIMESTAMP_HEADER),
            signature=lowered.get(MESSAGE_SIGNATURE_HEADER),
            message_type=lowered.get(MESSAGE_TYPE_HEADER),
            subscription_type=lowered.get(SUBSCRIPTION_TYPE_HEADER),
            body=body,
        )


@dataclass
class WebhookResponse:
    """Response to hand back to the EventSub provider."""

    status_code: int
    body: str = ""
    media_type: str | None = None


# --- EventSub payloads ---


class SubscriptionCondition(BaseModel):
    broadcaster_user_id: str | None = None
    reward_id: str | None = None


class SubscriptionTransport(BaseModel):
    method: str
    callback: str | None = None


class Subscription(BaseModel):
    id: str | None = None
    type: str
    version: str | None = None
    status: str
    cost: int | None = None
    condition: SubscriptionCondition | None = None
    transport: SubscriptionTransport | None = None
    created_at: str | None = None


class Reward(BaseModel):
    id: str
    title: str | None = None
    cost: int | None = None
    prompt: str | None = None


class RedemptionEvent(BaseModel):
    id: str | None = None
    broadcaster_user_id: str
    broadcaster_user_login: str | None = None
    broadcaster_user_name: str | None = None
    user_id: str | None = None
    user_login: str | None = None
    user_name: str | None = None
    user_input: str | None = None
    status: str | None = None
    reward: Reward
    redeemed_at: str | None = None


class VerificationChallenge(BaseModel):
    challenge: str
    subscription: Subscription


class RevocationNotice(BaseModel):
    subscription: Subscription


class RewardRedemptionNotice(BaseModel):
    subscription: Subscription
    event: RedemptionEvent


ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_payload(model: type[ModelT], body: bytes) -> ModelT:
    try:
        return model.model_validate_json(body)
    except ValidationError as exc:
        raise PayloadParseFailure(model.__name__, str(exc)) from exc
