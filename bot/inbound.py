"""Inbound WhatsApp message parsing"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InboundMessage:
    sender_id: str
    text: str
    timestamp: datetime
    message_id: Optional[str] = None
    phone_number_id: Optional[str] = None


def _parse_timestamp(raw) -> datetime:
    try:
        return datetime.fromtimestamp(int(raw), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return datetime.now(timezone.utc)


def extract_messages(body) -> List[InboundMessage]:
    """
    Pull every text message out of a webhook delivery

    Walks entry -> changes -> value.messages. Status updates, non-text
    messages and anything malformed are skipped.
    """
    if not isinstance(body, dict):
        return []

    messages = []
    for entry in body.get("entry") or []:
        if not isinstance(entry, dict):
            continue
        for change in entry.get("changes") or []:
            if not isinstance(change, dict):
                continue
            value = change.get("value") or {}
            if not isinstance(value, dict):
                continue
            metadata = value.get("metadata")
            phone_number_id = metadata.get("phone_number_id") if isinstance(metadata, dict) else None

            for message in value.get("messages") or []:
                if not isinstance(message, dict):
                    continue
                if message.get("type") != "text":
                    logger.info(f"ℹ️ Unsupported message type: {message.get('type')}")
                    continue

                sender_id = message.get("from")
                text_block = message.get("text")
                text = text_block.get("body") if isinstance(text_block, dict) else None
                if not sender_id or not isinstance(text, str) or not text.strip():
                    continue

                messages.append(InboundMessage(
                    sender_id=str(sender_id),
                    text=text,
                    timestamp=_parse_timestamp(message.get("timestamp")),
                    message_id=message.get("id"),
                    phone_number_id=phone_number_id
                ))

    return messages
