"""AWS Parameters and Secrets Lambda extension client.

The extension serves SSM parameters over a local HTTP port. Requests must
carry the Lambda session token in ``X-Aws-Parameters-Secrets-Token``; the
parameter value comes back as a string under ``Parameter.Value``.
"""

from __future__ import annotations

import json
import logging

import httpx
from pydantic import ValidationError

from robochick.models import MessageTemplateBank

logger = logging.getLogger(__name__)

_TIMEOUT_SECONDS = 1.0
_GET_PARAMETER_PATH = "/systemsmanager/parameters/get/"
_TOKEN_HEADER = "X-Aws-Parameters-Secrets-Token"


class ParameterStoreError(Exception):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class ParameterStoreClient:
    """Fetches parameters through the Lambda extension's HTTP interface."""

    def __init__(self, host: str, session_token: str) -> None:
        self._host = host
        self._session_token = session_token

    async def get_parameter(self, name: str) -> str:
        url = f"{self._host.rstrip('/')}{_GET_PARAMETER_PATH}"
        try:
            async with httpx.AsyncClient() as client:
                resp = await client.get(
                    url,
                    params={"name": name},
                    headers={_TOKEN_HEADER: self._session_token},
                    timeout=_TIMEOUT_SECONDS,
                )
        except httpx.HTTPError as exc:
            raise ParameterStoreError(f"Error making request to parameter store: {exc}") from exc

        if resp.status_code != 200:
            raise ParameterStoreError(
                f"Parameter store returned status {resp.status_code} for {name}",
                status_code=resp.status_code,
            )
        try:
            value = resp.json()["Parameter"]["Value"]
        except (json.JSONDecodeError, KeyError, TypeError) as exc:
            raise ParameterStoreError(f"Unexpected parameter store response for {name}") from exc
        if not isinstance(value, str):
            raise ParameterStoreError(f"Parameter {name} has no string value")
        return value

    async def load_message_bank(self, name: str) -> MessageTemplateBank:
        raw = await self.get_parameter(name)
        try:
            bank = MessageTemplateBank.model_validate_json(raw)
        except ValidationError as exc:
            raise ParameterStoreError(f"Error deserializing parameter {name}: {exc}") from exc
        logger.debug("Loaded message bank %s (%d scenarios)", name, len(bank.scenarios))
        return bank
