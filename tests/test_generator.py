"""
Unit tests for reply synthesis.
"""

import pytest

from knowledge.models import (
    ContextItem,
    ConversationContext,
    ConversationMessage,
    KnowledgeSnapshot,
    ProviderError,
)
from response.generator import ResponseGenerator

from conftest import FakeChatProvider


@pytest.fixture
def context_items():
    return [ContextItem(question="What time is check-in?", answer="3pm", confidence=0.5, tags=["check-in"])]


class TestSystemPrompt:
    """Test cases for system prompt assembly."""

    def test_general_question_lists_every_homestay(self, chat_provider, snapshot):
        generator = ResponseGenerator(chat_provider)
        prompt = generator.build_system_prompt("what time is check-in?", snapshot, "en")

        assert "Seaview Loft" in prompt
        assert "Heritage House" in prompt
        assert "GENERAL KNOWLEDGE BASE:\nAll homestays are non-smoking." in prompt
        assert prompt.endswith("Language Instructions: Please respond in English.")

    def test_mentioned_homestay_only(self, chat_provider, snapshot):
        generator = ResponseGenerator(chat_provider)
        prompt = generator.build_system_prompt("is it near the beach in penang?", snapshot, "en")

        assert "Homestay: Seaview Loft" in prompt
        assert "Heritage House" not in prompt

    def test_no_homestay_section(self, chat_provider, snapshot):
        generator = ResponseGenerator(chat_provider)
        prompt = generator.build_system_prompt("can I bring my cat?", snapshot, "en")
        assert "HOMESTAY PROPERTIES" not in prompt

    def test_history_keeps_last_five_turns(self, chat_provider, snapshot):
        messages = tuple(
            ConversationMessage(text=f"message {i}", is_from_customer=(i % 2 == 0)) for i in range(8)
        )
        conversation = ConversationContext(phone_number="60123", recent_messages=messages)
        prompt = ResponseGenerator(chat_provider).build_system_prompt("hi again", snapshot, "en", conversation)

        assert "message 2" not in prompt
        assert "Assistant: message 3" in prompt
        assert "Customer: message 4" in prompt
        assert "Assistant: message 7" in prompt

    def test_property_context(self, chat_provider, snapshot):
        conversation = ConversationContext(current_property="Heritage House")
        prompt = ResponseGenerator(chat_provider).build_system_prompt("is there parking", snapshot, "en", conversation)
        assert "The customer is asking about: Heritage House" in prompt

    def test_chinese_instruction(self, chat_provider, snapshot):
        prompt = ResponseGenerator(chat_provider).build_system_prompt("几点入住", snapshot, "zh")
        assert "Please respond in Chinese" in prompt


class TestGenerate:
    """Test cases for ResponseGenerator.generate."""

    @pytest.mark.asyncio
    async def test_passes_grounding_to_provider(self, chat_provider, snapshot, context_items):
        answer = await ResponseGenerator(chat_provider).generate("what time is check-in", context_items, snapshot)

        assert answer == "Check-in is from 3pm."
        call = chat_provider.calls[0]
        assert call['user_message'] == "what time is check-in"
        assert call['context_items'] == context_items

    @pytest.mark.asyncio
    async def test_busy_mode_prefix(self, snapshot, context_items):
        generator = ResponseGenerator(FakeChatProvider(reply="3pm."), busy_mode=True)

        assert (await generator.generate("check-in?", context_items, snapshot, "en")).startswith(
            "[We are experiencing high volume"
        )
        assert (await generator.generate("入住?", context_items, snapshot, "zh")).startswith("【目前咨询量较大")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reply", ["", "   ", None])
    async def test_empty_reply_is_an_error(self, snapshot, context_items, reply):
        generator = ResponseGenerator(FakeChatProvider(reply=reply))
        with pytest.raises(ProviderError):
            await generator.generate("check-in?", context_items, snapshot)

    @pytest.mark.asyncio
    async def test_timeout(self, snapshot, context_items):
        generator = ResponseGenerator(FakeChatProvider(delay=1.0), timeout=0.01)
        with pytest.raises(ProviderError, match="timed out"):
            await generator.generate("check-in?", context_items, snapshot)

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self, snapshot, context_items):
        generator = ResponseGenerator(FakeChatProvider(error=ProviderError("HTTP 429")))
        with pytest.raises(ProviderError, match="429"):
            await generator.generate("check-in?", context_items, KnowledgeSnapshot())
