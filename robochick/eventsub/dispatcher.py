"""EventSub webhook dispatcher.

Handling stages:
1. Signature gate (403 on any failure, nothing else runs)
2. Replay guard, when configured (duplicate ids acknowledged, stale rejected;
   the id is released again if a later stage raises)
3. Branch on message type:
   - webhook_callback_verification: echo the challenge (200 text/plain)
   - notification: validate, compose a chat message, post it (204)
   - revocation: record subscription type and status (204)

Failures to load the message bank, compose or post inside the notification
branch are logged and audited but still acknowledged with 204, so Twitch does
not redeliver the notification.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol

from robochick.eventsub.models import (
    MESSAGE_TYPE_NOTIFICATION,
    MESSAGE_TYPE_REVOCATION,
    MESSAGE_TYPE_VERIFICATION,
    PayloadParseFailure,
    RevocationNotice,
    RewardRedemptionNotice,
    VerificationChallenge,
    WebhookEnvelope,
    WebhookResponse,
    parse_payload,
)
from robochick.eventsub.signature import SignatureError, verify_signature
from robochick.messages.composer import ScenarioError, compose
from robochick.models import AuditEvent, AuditEventType, MessageTemplateBank, RiskLevel

if TYPE_CHECKING:
    from robochick.audit.logger import AuditLogger
    from robochick.config import AppConfig
    from robochick.eventsub.replay_protection import ReplayProtection

logger = logging.getLogger(__name__)


class ChatPoster(Protocol):
    async def post(self, message: str) -> str: ...


class MessageBankSource(Protocol):
    async def load_message_bank(self, name: str) -> MessageTemplateBank: ...


class DispatchError(Exception):
    """Base class for authenticated callbacks the dispatcher refuses."""


class UnknownMessageType(DispatchError):
    def __init__(self, message_type: str | None) -> None:
        self.message_type = message_type
        super().__init__(f"Unknown EventSub message type: {message_type!r}")


class UnknownSubscriptionType(DispatchError):
    def __init__(self, subscription_type: str | None) -> None:
        self.subscription_type = subscription_type
        super().__init__(f"Unexpected subscription type: {subscription_type!r}")


class UnknownNotification(DispatchError):
    def __init__(self, broadcaster_id: str, reward_id: str) -> None:
        self.broadcaster_id = broadcaster_id
        self.reward_id = reward_id
        super().__init__(
            f"Notification for unexpected broadcaster {broadcaster_id} / reward {reward_id}"
        )


def _empty(status_code: int) -> WebhookResponse:
    return WebhookResponse(status_code=status_code)


class EventDispatcher:
    """Authenticates EventSub callbacks and routes them by message type."""

    def __init__(
        self,
        config: AppConfig,
        bank_source: MessageBankSource,
        chat_poster: ChatPoster,
        rng_factory: Callable[[], random.Random] = random.Random,
        replay_protection: ReplayProtection | None = None,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._config = config
        self._bank_source = bank_source
        self._chat_poster = chat_poster
        self._rng_factory = rng_factory
        self._replay = replay_protection
        self._audit = audit_logger

    async def handle(self, envelope: WebhookEnvelope) -> WebhookResponse:
        """Run the full handling pipeline for one callback."""

        # Stage 1: signature gate
        try:
            verify_signature(
                envelope.message_id,
                envelope.timestamp,
                envelope.body,
                envelope.signature,
                self._config.secret_bytes,
            )
        except SignatureError as exc:
            logger.warning("Rejected EventSub callback: %s", exc)
            self._record(
                envelope, AuditEventType.SIGNATURE_FAILURE, "verify", "failure",
                RiskLevel.HIGH, {"reason": type(exc).__name__},
            )
            return _empty(403)

        # Stage 2: replay guard
        if self._replay is not None:
            replay_response = self._check_replay(self._replay, envelope)
            if replay_response is not None:
                return replay_response

        # Stage 3: branch on message type
        try:
            return await self._dispatch(envelope)
        except Exception:
            # A crashed message must stay deliverable for Twitch's retry.
            if self._replay is not None and envelope.message_id is not None:
                self._replay.forget(envelope.message_id)
            raise

    async def _dispatch(self, envelope: WebhookEnvelope) -> WebhookResponse:
        try:
            if envelope.message_type == MESSAGE_TYPE_VERIFICATION:
                return self._handle_verification(envelope)
            if envelope.message_type == MESSAGE_TYPE_NOTIFICATION:
                return await self._handle_notification(envelope)
            if envelope.message_type == MESSAGE_TYPE_REVOCATION:
                return self._handle_revocation(envelope)
            raise UnknownMessageType(envelope.message_type)
        except (DispatchError, PayloadParseFailure) as exc:
            logger.warning("Rejected EventSub %s message: %s", envelope.message_type, exc)
            self._record(
                envelope, AuditEventType.REJECTED, envelope.message_type or "unknown",
                "rejected", RiskLevel.MEDIUM, {"reason": type(exc).__name__},
            )
            return _empty(400)

    def _check_replay(
        self, replay: ReplayProtection, envelope: WebhookEnvelope,
    ) -> WebhookResponse | None:
        # Both headers are present once the signature gate has passed.
        if not replay.check_timestamp(envelope.timestamp or ""):
            logger.warning("Stale EventSub message %s (%s)", envelope.message_id, envelope.timestamp)
            self._record(
                envelope, AuditEventType.REPLAY_REJECTED, "timestamp", "rejected",
                RiskLevel.MEDIUM, {"timestamp": envelope.timestamp},
            )
            return _empty(400)
        if not replay.check_message_id(envelope.message_id or ""):
            logger.info("Duplicate EventSub message %s acknowledged", envelope.message_id)
            self._record(
                envelope, AuditEventType.REPLAY_REJECTED, "message_id", "ignored",
                RiskLevel.LOW,
            )
            return _empty(204)
        return None

    def _handle_verification(self, envelope: WebhookEnvelope) -> WebhookResponse:
        payload = parse_payload(VerificationChallenge, envelope.body)
        logger.info("Answering verification challenge for %s", payload.subscription.type)
        self._record(
            envelope, AuditEventType.CHALLENGE, "verify_subscription", "success",
            RiskLevel.INFO, {"subscription_type": payload.subscription.type},
        )
        return WebhookResponse(
            status_code=200, body=payload.challenge, media_type="text/plain",
        )

    def _handle_revocation(self, envelope: WebhookEnvelope) -> WebhookResponse:
        payload = parse_payload(RevocationNotice, envelope.body)
        subscription = payload.subscription
        logger.warning(
            "Subscription revoked: type=%s status=%s", subscription.type, subscription.status,
        )
        self._record(
            envelope, AuditEventType.REVOCATION, "revoke", "success", RiskLevel.MEDIUM,
            {"subscription_type": subscription.type, "status": subscription.status},
        )
        return _empty(204)

    async def _handle_notification(self, envelope: WebhookEnvelope) -> WebhookResponse:
        if envelope.subscription_type is None:
            raise UnknownSubscriptionType(None)
        if envelope.subscription_type != self._config.subscription_type:
            raise UnknownSubscriptionType(envelope.subscription_type)

        notice = parse_payload(RewardRedemptionNotice, envelope.body)
        event = notice.event
        if (
            event.broadcaster_user_id != self._config.broadcaster_id
            or event.reward.id != self._config.reward_id
        ):
            raise UnknownNotification(event.broadcaster_user_id, event.reward.id)

        logger.info("Reward %s redeemed by %s", event.reward.id, event.user_login)
        self._record(
            envelope, AuditEventType.NOTIFICATION, "redemption", "success", RiskLevel.INFO,
            {"reward_id": event.reward.id, "user_id": event.user_id},
        )

        message = await self._compose_message(envelope)
        if message is not None:
            await self._post_message(envelope, message)
        return _empty(204)

    async def _compose_message(self, envelope: WebhookEnvelope) -> str | None:
        try:
            bank = await self._bank_source.load_message_bank(
                self._config.message_bank_parameter,
            )
            return compose(bank, self._rng_factory())
        except ScenarioError as exc:
            reason = type(exc).__name__
            logger.error("Message composition failed: %s", exc)
        except Exception as exc:
            # Bank sources raise their own error types; all of them are acknowledged.
            reason = "bank_load_failed"
            logger.exception("Loading message bank failed: %s", exc)
        self._record(
            envelope, AuditEventType.COMPOSITION_FAILURE, "compose", "failure",
            RiskLevel.MEDIUM, {"reason": reason},
        )
        return None

    async def _post_message(self, envelope: WebhookEnvelope, message: str) -> None:
        try:
            await self._chat_poster.post(message)
        except Exception as exc:
            logger.exception("Posting chat message failed: %s", exc)
            self._record(
                envelope, AuditEventType.CHAT_POST, "post", "failure", RiskLevel.MEDIUM,
                {"error": type(exc).__name__},
            )
            return
        self._record(envelope, AuditEventType.CHAT_POST, "post", "success", RiskLevel.INFO)

    def _record(
        self,
        envelope: WebhookEnvelope,
        event_type: AuditEventType,
        action: str,
        result: str,
        risk_level: RiskLevel,
        details: dict[str, object] | None = None,
    ) -> None:
        if self._audit:
            self._audit.log(AuditEvent(
                event_type=event_type,
                message_id=envelope.message_id,
                subscription_type=envelope.subscription_type,
                action=action,
                result=result,
                risk_level=risk_level,
                details=details,
            ))
