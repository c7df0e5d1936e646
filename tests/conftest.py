"""Shared test fixtures for robochick."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from robochick.audit.logger import AuditLogger
from robochick.config import AppConfig
from robochick.eventsub.models import (
    MESSAGE_TYPE_NOTIFICATION,
    REWARD_REDEMPTION_SUBSCRIPTION,
)
from robochick.eventsub.signature import sign
from robochick.models import MessageTemplateBank, Scenario

SECRET = "chickencoop"
BROADCASTER_ID = "12826"
REWARD_ID = "9fcd3a83-2d8c-4f1c-8f2c-5ab7e1a2c3d4"


@pytest.fixture
def app_config() -> AppConfig:
    return make_config()


@pytest.fixture
def mock_audit_logger() -> MagicMock:
    return MagicMock(spec=AuditLogger)


@pytest.fixture
def chat_poster() -> AsyncMock:
    poster = AsyncMock()
    poster.post.return_value = '{"status":200}'
    return poster


@pytest.fixture
def config_dir() -> Path:
    return Path(__file__).parent.parent / "config"


# --- Factory functions for test data ---


def make_config(**kwargs: Any) -> AppConfig:
    """Factory for AppConfig with sensible defaults."""
    defaults: dict[str, Any] = {
        "eventsub_secret": SECRET,
        "broadcaster_id": BROADCASTER_ID,
        "reward_id": REWARD_ID,
        "se_api_host": "http://localhost:3000/streamelements/",
        "se_jwt": "se-token-value",
        "se_channel_id": "example_channel_id",
        "aws_session_token": "session-token",
    }
    defaults.update(kwargs)
    return AppConfig(**defaults)


def make_scenario(**kwargs: Any) -> Scenario:
    defaults: dict[str, Any] = {
        "template": "{winner} beats {other}",
        "winners": ["winner"],
        "others": ["other"],
    }
    defaults.update(kwargs)
    return Scenario(**defaults)


def make_bank(
    scenarios: list[Scenario] | None = None,
    mods: list[str] | None = None,
) -> MessageTemplateBank:
    return MessageTemplateBank(
        scenarios=[make_scenario()] if scenarios is None else scenarios,
        mods=["John", "Jane"] if mods is None else mods,
    )


def bank_source_for(bank: MessageTemplateBank) -> AsyncMock:
    source = AsyncMock()
    source.load_message_bank.return_value = bank
    return source


def now_timestamp() -> str:
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%S.%f") + "123Z"


def make_subscription(**kwargs: Any) -> dict[str, Any]:
    defaults: dict[str, Any] = {
        "id": "f1c2a387-161a-49f9-a165-0f21d7a4e1c4",
        "type": REWARD_REDEMPTION_SUBSCRIPTION,
        "version": "1",
        "status": "enabled",
        "cost": 0,
        "condition": {"broadcaster_user_id": BROADCASTER_ID, "reward_id": REWARD_ID},
        "transport": {"method": "webhook", "callback": "https://example.com/webhook/eventsub"},
        "created_at": "2025-09-14T00:00:00.123456789Z",
    }
    defaults.update(kwargs)
    return defaults


def make_challenge_body(challenge: str = "pogchamp-kappa-360noscope-vohiyo") -> bytes:
    return json.dumps({
        "challenge": challenge,
        "subscription": make_subscription(status="webhook_callback_verification_pending"),
    }).encode()


def make_revocation_body(status: str = "authorization_revoked") -> bytes:
    return json.dumps({"subscription": make_subscription(status=status)}).encode()


def make_redemption_body(
    broadcaster_id: str = BROADCASTER_ID,
    reward_id: str = REWARD_ID,
) -> bytes:
    return json.dumps({
        "subscription": make_subscription(),
        "event": {
            "id": "17fa2df1-ad76-4804-bfa5-a40ef63efe63",
            "broadcaster_user_id": broadcaster_id,
            "broadcaster_user_login": "cool_user",
            "broadcaster_user_name": "Cool_User",
            "user_id": "9001",
            "user_login": "cooler_user",
            "user_name": "Cooler_User",
            "user_input": "pogchamp",
            "status": "unfulfilled",
            "reward": {
                "id": reward_id,
                "title": "Release the chicken",
                "cost": 100,
                "prompt": "Release a chicken into the coop",
            },
            "redeemed_at": "2025-09-14T00:00:00.123456789Z",
        },
    }).encode()


def make_headers(
    body: bytes,
    message_type: str | None = MESSAGE_TYPE_NOTIFICATION,
    subscription_type: str | None = REWARD_REDEMPTION_SUBSCRIPTION,
    message_id: str = "message-1",
    timestamp: str | None = None,
    secret: str = SECRET,
) -> dict[str, str]:
    """Build EventSub headers carrying a valid signature for ``body``."""
    timestamp = timestamp or now_timestamp()
    headers = {
        "Twitch-Eventsub-Message-Id": message_id,
        "Twitch-Eventsub-Message-Timestamp": timestamp,
        "Twitch-Eventsub-Message-Signature": sign(message_id, timestamp, body, secret),
    }
    if message_type is not None:
        headers["Twitch-Eventsub-Message-Type"] = message_type
    if subscription_type is not None:
        headers["Twitch-Eventsub-Subscription-Type"] = subscription_type
    return headers
