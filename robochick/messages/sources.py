"""Local message bank source backed by JSON files on disk."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from robochick.models import MessageTemplateBank

logger = logging.getLogger(__name__)


class MessageBankError(Exception):
    """Raised when a message bank cannot be read or validated."""


def load_bank_from_file(path: str | Path) -> MessageTemplateBank:
    bank_path = Path(path)
    if not bank_path.exists():
        raise MessageBankError(f"Message bank file not found: {bank_path}")
    try:
        return MessageTemplateBank.model_validate(json.loads(bank_path.read_text()))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise MessageBankError(f"Invalid message bank {bank_path}: {exc}") from exc


class FileMessageBankSource:
    """Reads ``<directory>/<name>.json`` on every call; nothing is cached."""

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)

    async def load_message_bank(self, name: str) -> MessageTemplateBank:
        bank = load_bank_from_file(self._directory / f"{name}.json")
        logger.debug("Loaded message bank %s (%d scenarios)", name, len(bank.scenarios))
        return bank
