"""
Decision engine: turns one customer message into a reply decision.

    greeting?  -> canned greeting, no retrieval
    chat provider configured?  -> otherwise withhold the reply
    candidates -> rerank -> MATCHED (chat model writes the reply) or NO_MATCH (fallback)

The engine never raises to its caller (cancellation aside) and never writes
the trace itself; ``ProcessingResult.processing_details`` carries it for the
caller to log.
"""

import logging
import time
from typing import Optional

from inap_types import ConfidenceCategory, DecisionState, FinalDecision, SearchMethod
from knowledge.models import (
    ConfigurationError,
    ConversationContext,
    KnowledgeSnapshot,
    ProcessingDetails,
    ProcessingResult,
    ProviderError,
    RetrievalSettings,
)
from response.generator import ResponseGenerator
from retrieval.candidates import CandidateGenerator
from retrieval.reranker import SignalReranker
from .greetings import GreetingDetector
from .language_handler import LanguageHandler

logger = logging.getLogger("Inap")


class DecisionEngine:
    """Greeting / matched / no-match state machine over an immutable knowledge snapshot."""

    def __init__(
        self,
        chat_provider,
        embedding_provider=None,
        settings: Optional[RetrievalSettings] = None,
        generator: Optional[ResponseGenerator] = None,
        language_handler: Optional[LanguageHandler] = None,
        greeting_detector: Optional[GreetingDetector] = None,
    ):
        """
        Args:
            chat_provider: ``ChatProvider``; when unconfigured no reply is produced
            embedding_provider: Optional ``EmbeddingProvider`` for semantic search
            settings: Retrieval tunables
            generator: Reply writer; built around ``chat_provider`` if omitted
            language_handler: Reply-language selection and canned templates
            greeting_detector: Greeting patterns
        """
        self.settings = settings or RetrievalSettings()
        self.chat_provider = chat_provider
        self.embedding_provider = embedding_provider
        self.language_handler = language_handler or LanguageHandler()
        self.greeting_detector = greeting_detector or GreetingDetector()
        self.generator = generator or ResponseGenerator(
            chat_provider,
            language_handler=self.language_handler,
            timeout=self.settings.provider_timeout,
        )
        self.candidate_generator = CandidateGenerator(self.settings)
        self.reranker = SignalReranker(self.settings)

    @classmethod
    def from_config(cls, config, chat_provider, embedding_provider=None) -> "DecisionEngine":
        settings = config.retrieval_settings()
        language_handler = LanguageHandler.from_config(config)
        generator = ResponseGenerator(
            chat_provider,
            language_handler=language_handler,
            busy_mode=config.BUSY_MODE,
            timeout=settings.provider_timeout,
        )
        return cls(
            chat_provider,
            embedding_provider=embedding_provider,
            settings=settings,
            generator=generator,
            language_handler=language_handler,
        )

    def chat_configured(self) -> bool:
        return self.chat_provider is not None and bool(getattr(self.chat_provider, "is_configured", False))

    async def process_message(
        self,
        message: str,
        snapshot: KnowledgeSnapshot,
        conversation: Optional[ConversationContext] = None,
    ) -> ProcessingResult:
        """
        Process one customer message.

        Returns:
            ProcessingResult; ``answer`` is None when no reply must be sent
        """
        started = time.perf_counter()
        details = ProcessingDetails()
        result = ProcessingResult(processing_details=details)

        try:
            await self._process(message or "", snapshot, conversation, result)
        except Exception as e:
            logger.debug(f"Unexpected error while processing message: {e}", exc_info=True)
            result.answer = None
            result.confidence = 0.0
            result.matched_question = None
            details.final_decision = FinalDecision.PROCESSING_ERROR.value
            details.error = f"{type(e).__name__}: {e}"
            details.add_step("Processing aborted by an unexpected error")

        details.confidence_category = ConfidenceCategory.from_score(result.confidence).value
        result.processing_time_ms = int((time.perf_counter() - started) * 1000)
        return result

    async def _process(self, message: str, snapshot: KnowledgeSnapshot,
                       conversation: Optional[ConversationContext], result: ProcessingResult) -> None:
        details = result.processing_details
        language = self.language_handler.get_response_language(message)
        details.language = language
        details.add_step(f"Response language: {language}")

        # 1. Greeting short-circuit
        if self.greeting_detector.is_greeting(message):
            details.state = DecisionState.GREETING.value
            details.greeting_detected = True
            details.final_decision = FinalDecision.GREETING.value
            details.search_method = SearchMethod.NONE.value
            details.add_step("Greeting detected, retrieval skipped")
            result.answer = self.language_handler.get_template(language, "greeting")
            result.confidence = 1.0
            return

        # 2. Without a chat model there is nobody to write the reply
        if not self.chat_configured():
            details.final_decision = FinalDecision.API_KEY_REQUIRED.value
            details.search_method = SearchMethod.NONE.value
            details.error = "Chat provider is not configured (API key required)"
            details.add_step("No chat provider credentials, reply withheld")
            return

        # 3. Retrieval
        search = await self.candidate_generator.generate(message, snapshot.faqs, self.embedding_provider)
        details.search_method = search.search_method.value
        details.fallback_reason = search.fallback_reason
        details.active_faqs = search.scored_count
        details.skipped_faqs = search.skipped_count
        details.candidates_found = len(search.candidates)
        details.add_step(
            f"Candidate generation ({search.search_method.value}): "
            f"{len(search.candidates)} of {search.scored_count} active FAQs above threshold"
        )
        if search.fallback_reason:
            details.add_step(f"Fallback: {search.fallback_reason}")

        reranked = self.reranker.rerank(message, snapshot.homestays, search.candidates)
        details.top_candidates = [r.to_summary() for r in reranked]
        if reranked:
            details.add_step(f"Reranked, top score {reranked[0].final_score:.4f}")

        # 4. Matched / no-match split
        if not reranked or reranked[0].final_score <= 0:
            details.state = DecisionState.NO_MATCH.value
            details.final_decision = FinalDecision.FALLBACK.value
            details.add_step("No matching FAQ, fallback message used")
            result.answer = self.language_handler.get_template(language, "fallback")
            result.confidence = 0.0
            return

        top = reranked[0]
        context_items = [r.to_context_item() for r in reranked]
        details.state = DecisionState.MATCHED.value
        details.context_items = context_items
        result.confidence = top.final_score
        result.matched_question = top.faq.question

        try:
            result.answer = await self.generator.generate(
                message, context_items, snapshot, language=language, conversation=conversation
            )
        except (ProviderError, ConfigurationError) as e:
            result.answer = None
            details.final_decision = FinalDecision.CHAT_FAILED.value
            details.error = str(e)
            details.add_step(f"Chat model failed: {e}")
            return
        except Exception as e:
            # Any other provider bug still means nobody wrote the reply
            result.answer = None
            details.final_decision = FinalDecision.CHAT_FAILED.value
            details.error = f"{type(e).__name__}: {e}"
            details.add_step(f"Chat model failed: {e}")
            return

        details.final_decision = FinalDecision.CHAT_MODEL.value
        details.add_step(f"Chat model wrote the reply from {len(context_items)} FAQ(s)")
