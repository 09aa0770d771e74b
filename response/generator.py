"""
Reply synthesis: the chat model writes every customer-facing answer from the
FAQ grounding, the property data and the recent conversation.
"""

import asyncio
import logging
from typing import List, Optional, Sequence

from knowledge.models import (
    ContextItem,
    ConversationContext,
    Homestay,
    KnowledgeSnapshot,
    ProviderError,
)
from nlp_config_loader import config_loader
from query_handling.language_handler import LanguageHandler

logger = logging.getLogger("Inap")

BASE_SYSTEM_PROMPT = "You are a professional homestay customer service assistant."

GUIDELINES = """GUIDELINES:
1. Use FAQ information as your PRIMARY source for answers
2. Integrate homestay data to provide comprehensive information
3. Be helpful, professional, and friendly
4. If unsure, ask clarifying questions
5. Use conversation history for context
6. Focus on the mentioned property if property context exists
7. Keep responses concise but informative
8. If the question is not related to homestays, politely redirect

IMPORTANT: FAQ information takes TOP PRIORITY; homestay data, general knowledge and conversation memory only make the answer more complete."""

HISTORY_TURNS = 5


class ResponseGenerator:
    """Builds the system prompt and asks the chat provider for the reply."""

    def __init__(self, chat_provider, language_handler: Optional[LanguageHandler] = None,
                 busy_mode: bool = False, timeout: float = 8.0,
                 general_keywords: Optional[List[str]] = None):
        """
        Args:
            chat_provider: ``ChatProvider`` used to write the reply
            language_handler: Source of language instructions and busy notices
            busy_mode: Prefix every reply with the high-volume notice
            timeout: Seconds to wait for the chat provider
            general_keywords: Keywords marking a question as applying to every property
        """
        self.chat_provider = chat_provider
        self.language_handler = language_handler or LanguageHandler()
        self.busy_mode = busy_mode
        self.timeout = timeout
        if general_keywords is None:
            general_keywords = config_loader.get_general_question_keywords()
        self.general_keywords = [k.lower() for k in general_keywords]

    def is_general_question(self, message: str) -> bool:
        q = (message or "").lower()
        return any(keyword in q for keyword in self.general_keywords)

    @staticmethod
    def find_mentioned_homestay(message: str, homestays: Sequence[Homestay]) -> Optional[Homestay]:
        q = (message or "").lower()
        for homestay in homestays:
            if homestay.name and homestay.name.lower() in q:
                return homestay
            if homestay.city and homestay.city.lower() in q:
                return homestay
        return None

    @staticmethod
    def _describe_homestay(homestay: Homestay) -> str:
        lines = [
            f"Homestay: {homestay.name}",
            f"Location: {homestay.city or 'N/A'}",
        ]
        if homestay.address:
            lines.append(f"Address: {homestay.address}")
        if homestay.phone:
            lines.append(f"Phone: {homestay.phone}")
        if homestay.checkin_time:
            lines.append(f"Check-in: {homestay.checkin_time}")
        if homestay.checkout_time:
            lines.append(f"Check-out: {homestay.checkout_time}")
        lines.append(f"Amenities: {', '.join(homestay.amenities) or 'N/A'}")
        if homestay.notes:
            lines.append(f"Notes: {homestay.notes}")
        return "\n".join(lines)

    def homestay_section(self, message: str, homestays: Sequence[Homestay]) -> str:
        """Property information relevant to the message, or an empty string."""
        if not homestays:
            return ""
        if self.is_general_question(message):
            body = "\n---\n".join(self._describe_homestay(h) for h in homestays)
            return f"HOMESTAY PROPERTIES:\n{body}"
        mentioned = self.find_mentioned_homestay(message, homestays)
        if mentioned:
            return f"HOMESTAY PROPERTIES:\n{self._describe_homestay(mentioned)}"
        return ""

    @staticmethod
    def history_section(conversation: Optional[ConversationContext]) -> str:
        if conversation is None or not conversation.recent_messages:
            return ""
        turns = conversation.recent_messages[-HISTORY_TURNS:]
        lines = [
            f"{'Customer' if msg.is_from_customer else 'Assistant'}: {msg.text}"
            for msg in turns
        ]
        return "CONVERSATION HISTORY:\n" + "\n".join(lines)

    @staticmethod
    def property_section(conversation: Optional[ConversationContext]) -> str:
        if conversation is not None and conversation.current_property:
            return (
                f"PROPERTY CONTEXT:\nThe customer is asking about: {conversation.current_property}\n"
                "Focus the answer on this property."
            )
        return "PROPERTY CONTEXT:\nNo specific property context - provide general information."

    def build_system_prompt(self, message: str, snapshot: KnowledgeSnapshot, language: str,
                            conversation: Optional[ConversationContext] = None) -> str:
        sections = [
            BASE_SYSTEM_PROMPT,
            GUIDELINES,
            self.homestay_section(message, snapshot.homestays),
        ]
        if snapshot.general_knowledge:
            sections.append(f"GENERAL KNOWLEDGE BASE:\n{snapshot.general_knowledge}")
        sections.append(self.history_section(conversation))
        sections.append(self.property_section(conversation))
        sections.append(f"Language Instructions: {self.language_handler.language_instruction(language)}")
        return "\n\n".join(s for s in sections if s)

    async def generate(self, message: str, context_items: Sequence[ContextItem],
                       snapshot: KnowledgeSnapshot, language: str = "en",
                       conversation: Optional[ConversationContext] = None) -> str:
        """
        Write the reply for a matched message.

        Raises:
            ProviderError: On provider failure, timeout or an empty completion
            ConfigurationError: If the provider has no credentials
        """
        system_prompt = self.build_system_prompt(message, snapshot, language, conversation)

        try:
            answer = await asyncio.wait_for(
                self.chat_provider.complete(system_prompt, list(context_items), message),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise ProviderError(f"Chat provider timed out after {self.timeout}s") from e

        answer = (answer or "").strip()
        if not answer:
            raise ProviderError("Chat provider returned an empty reply")

        if self.busy_mode:
            notice = self.language_handler.get_template(language, "busy")
            answer = f"{notice} {answer}"
            logger.debug("Busy-mode notice added to reply")

        return answer
