"""Shared test fixtures for the WhatsApp ERP assistant."""

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from bot.inbound import InboundMessage
from services.erp_client import ERPClient
from services.intent_classifier import Entities, Intent, IntentResult, Sentiment

ERP_BASE_URL = "https://erp.example.com"


def make_message(text: str, sender_id: str = "971501234567", message_id: str = "wamid.1") -> InboundMessage:
    return InboundMessage(
        sender_id=sender_id,
        text=text,
        timestamp=datetime.now(timezone.utc),
        message_id=message_id
    )


def make_result(intent: Intent, confidence: float, entities: Entities = None, sentiment: str = "neutral") -> IntentResult:
    return IntentResult(
        intent=intent,
        confidence=confidence,
        entities=entities or Entities(),
        sentiment=Sentiment(label=sentiment, score=0.0)
    )


def json_response(status_code: int, body) -> httpx.Response:
    return httpx.Response(status_code, content=json.dumps(body), headers={"Content-Type": "application/json"})


@pytest.fixture
def erp_factory():
    """Build an ERPClient whose HTTP traffic goes to a handler function."""

    def _create(handler, custom_doc_types=None) -> ERPClient:
        return ERPClient(
            base_url=ERP_BASE_URL,
            api_key="key",
            api_secret="secret",
            custom_doc_types=custom_doc_types if custom_doc_types is not None else ["Address"],
            order_item_code="5 Gallon Filled",
            territory="DXB 02",
            timeout=5,
            max_attempts=1,
            transport=httpx.MockTransport(handler)
        )

    return _create


@pytest.fixture
def fake_erp() -> AsyncMock:
    erp = AsyncMock(spec=ERPClient)
    erp.find_customer_by_mobile.return_value = "*CUSTOMER FOUND* ✅"
    erp.lookup_customer.return_value = None
    return erp


@pytest.fixture
def fake_classifier() -> MagicMock:
    classifier = MagicMock()
    classifier.is_trained = True
    classifier.classify = AsyncMock(return_value=make_result(Intent.UNKNOWN, 0.0))
    return classifier
