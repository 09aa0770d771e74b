"""
Shared fixtures and fake providers for the Inap test suite.
"""

import asyncio
from typing import Dict, List, Optional

import pytest

from knowledge.models import FAQEntry, Homestay, KnowledgeSnapshot, RetrievalSettings


class FakeChatProvider:
    """Chat provider that records its calls and returns a canned reply."""

    def __init__(self, reply: str = "Check-in is from 3pm.", configured: bool = True,
                 error: Optional[Exception] = None, delay: float = 0.0):
        self.reply = reply
        self.configured = configured
        self.error = error
        self.delay = delay
        self.calls: List[Dict] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def complete(self, system_prompt, context_items, user_message):
        self.calls.append({
            'system_prompt': system_prompt,
            'context_items': list(context_items),
            'user_message': user_message,
        })
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reply


class FakeEmbeddingProvider:
    """Embedding provider backed by a lookup table."""

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None,
                 default: Optional[List[float]] = None, error: Optional[Exception] = None,
                 delay: float = 0.0):
        self.vectors = vectors or {}
        self.default = default if default is not None else [1.0, 0.0, 0.0]
        self.error = error
        self.delay = delay
        self.calls: List[str] = []

    async def embed(self, text):
        self.calls.append(text)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.vectors.get(text, self.default)


@pytest.fixture
def settings():
    return RetrievalSettings()


@pytest.fixture
def checkin_faq():
    return FAQEntry(
        question="What time is check-in?",
        answer="3pm",
        tags=("check-in",),
        id="faq-checkin",
    )


@pytest.fixture
def wifi_faq():
    return FAQEntry(
        question="Is there WiFi?",
        answer="Yes, free WiFi in every unit.",
        tags=("wifi",),
        id="faq-wifi",
    )


@pytest.fixture
def pool_faq():
    return FAQEntry(
        question="Does Seaview Loft have a pool?",
        answer="Yes, a rooftop pool open 7am to 10pm.",
        tags=("pool",),
        related_homestay="Seaview Loft",
        id="faq-pool",
    )


@pytest.fixture
def homestays():
    return (
        Homestay(
            name="Seaview Loft",
            city="Penang",
            amenities=("pool", "wifi", "parking"),
            address="12 Jalan Pantai",
            checkin_time="3:00 PM",
            checkout_time="12:00 PM",
        ),
        Homestay(
            name="Heritage House",
            city="Melaka",
            amenities=("wifi", "breakfast"),
            checkin_time="2:00 PM",
            checkout_time="11:00 AM",
        ),
    )


@pytest.fixture
def snapshot(checkin_faq, wifi_faq, pool_faq, homestays):
    return KnowledgeSnapshot(
        faqs=(checkin_faq, wifi_faq, pool_faq),
        homestays=homestays,
        general_knowledge="All homestays are non-smoking.",
    )


@pytest.fixture
def chat_provider():
    return FakeChatProvider()
