"""Process configuration, read once from the environment at startup."""

from __future__ import annotations

import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict

from robochick.eventsub.models import REWARD_REDEMPTION_SUBSCRIPTION


class ConfigError(Exception):
    """Raised when a required environment variable is missing or invalid."""


class AppConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    eventsub_secret: str
    broadcaster_id: str
    reward_id: str
    subscription_type: str = REWARD_REDEMPTION_SUBSCRIPTION

    se_api_host: str
    se_jwt: str
    se_channel_id: str

    parameter_store_host: str = "http://localhost:2773"
    aws_session_token: str = ""
    message_bank_parameter: str = "message_components"
    message_bank_dir: str | None = None

    audit_log_path: str | None = None
    replay_db_path: str | None = None
    max_message_age_seconds: int = 600

    @property
    def secret_bytes(self) -> bytes:
        return self.eventsub_secret.encode()

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> AppConfig:
        env = os.environ if environ is None else environ

        def required(name: str) -> str:
            value = env.get(name)
            if not value:
                raise ConfigError(f"Missing {name} env var")
            return value

        bank_dir = env.get("MESSAGE_BANK_DIR") or None
        max_age = env.get("EVENTSUB_MAX_MESSAGE_AGE_SECONDS", "600")
        try:
            max_age_seconds = int(max_age)
        except ValueError as exc:
            raise ConfigError(
                f"EVENTSUB_MAX_MESSAGE_AGE_SECONDS must be an integer, got {max_age!r}"
            ) from exc

        return cls(
            eventsub_secret=required("TWITCH_EVENTSUB_SUBSCRIPTION_SECRET"),
            broadcaster_id=required("TWITCH_BROADCASTER_ID"),
            reward_id=required("TWITCH_REWARD_ID"),
            subscription_type=env.get("TWITCH_SUBSCRIPTION_TYPE", REWARD_REDEMPTION_SUBSCRIPTION),
            se_api_host=required("SE_API_HOST"),
            se_jwt=required("SE_JWT"),
            se_channel_id=required("SE_CHANNEL_ID"),
            parameter_store_host=env.get("AWS_PARAMETER_STORE_HOST", "http://localhost:2773"),
            # Only the parameter store needs the Lambda session token.
            aws_session_token=(
                env.get("AWS_SESSION_TOKEN", "") if bank_dir else required("AWS_SESSION_TOKEN")
            ),
            message_bank_parameter=env.get("MESSAGE_BANK_PARAMETER", "message_components"),
            message_bank_dir=bank_dir,
            audit_log_path=env.get("AUDIT_LOG_PATH") or None,
            replay_db_path=env.get("REPLAY_DB_PATH") or None,
            max_message_age_seconds=max_age_seconds,
        )
