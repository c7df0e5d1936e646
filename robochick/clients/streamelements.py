"""StreamElements bot client that posts composed messages to Twitch chat."""

from __future__ import annotations

import logging

import httpx

logger = logging.getLogger(__name__)

_TIMEOUT_SECONDS = 1.0


class ChatPostError(Exception):
    """Raised when StreamElements does not accept a chat message."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class StreamElementsClient:
    """Sends chat messages through the StreamElements bot ``say`` endpoint."""

    def __init__(self, api_host: str, jwt: str, channel_id: str) -> None:
        self._api_host = api_host
        self._jwt = jwt
        self._channel_id = channel_id

    @property
    def say_url(self) -> str:
        return f"{self._api_host.rstrip('/')}/kappa/v2/bot/{self._channel_id}/say"

    async def post(self, message: str) -> str:
        """Post ``message`` and return the raw response body.

        No retries: a failed post is reported to the caller once.
        """
        headers = {"Authorization": f"Bearer {self._jwt}"}
        try:
            async with httpx.AsyncClient(verify=True) as client:
                resp = await client.post(
                    self.say_url,
                    json={"message": message},
                    headers=headers,
                    timeout=_TIMEOUT_SECONDS,
                )
        except httpx.HTTPError as exc:
            raise ChatPostError(f"Failed to reach StreamElements API: {exc}") from exc

        if resp.status_code >= 400:
            raise ChatPostError(
                f"StreamElements API returned error with status: {resp.status_code}",
                status_code=resp.status_code,
            )
        logger.info("Posted chat message to channel %s", self._channel_id)
        return resp.text
