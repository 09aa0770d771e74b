"""
Unit tests for candidate generation.
"""

import asyncio
from dataclasses import replace
from unittest.mock import AsyncMock

import pytest

from inap_types import MatchMethod, SearchMethod
from knowledge.models import ConfigurationError, FAQEntry, ProviderError, RetrievalSettings
from retrieval.candidates import CandidateGenerator

from conftest import FakeEmbeddingProvider


@pytest.fixture
def generator(settings):
    return CandidateGenerator(settings)


@pytest.fixture
def embedded_faqs():
    return [
        FAQEntry(question="What time is check-in?", answer="3pm", tags=("check-in",), embedding=(1.0, 0.0, 0.0)),
        FAQEntry(question="Is there WiFi?", answer="Yes", tags=("wifi",), embedding=(0.0, 1.0, 0.0)),
        FAQEntry(question="Is parking available?", answer="Yes", tags=("parking",), embedding=(0.6, 0.8, 0.0)),
    ]


class TestLexicalGeneration:
    """Candidate generation without embeddings."""

    @pytest.mark.asyncio
    async def test_no_provider_uses_lexical_fallback(self, generator, checkin_faq, wifi_faq):
        search = await generator.generate("what time is check-in", [checkin_faq, wifi_faq])

        assert search.search_method is SearchMethod.LEXICAL_FALLBACK
        assert search.fallback_reason == "No embedding provider configured"
        assert len(search.candidates) == 1
        top = search.candidates[0]
        assert top.faq is checkin_faq
        assert top.match_method is MatchMethod.TAG
        assert top.similarity_score == pytest.approx(0.7)

    @pytest.mark.asyncio
    async def test_query_embedded_without_stored_vectors(self, generator, checkin_faq):
        provider = FakeEmbeddingProvider()
        search = await generator.generate("check-in", [checkin_faq], provider)

        assert provider.calls == ["check-in"]
        assert search.search_method is SearchMethod.EMBEDDING
        assert search.fallback_reason is None
        assert search.candidates[0].match_method is MatchMethod.TAG

    @pytest.mark.asyncio
    async def test_failing_provider_visible_without_stored_vectors(self, generator, checkin_faq):
        provider = FakeEmbeddingProvider(error=ProviderError("HTTP 503"))
        search = await generator.generate("check-in", [checkin_faq], provider)

        assert provider.calls == ["check-in"]
        assert search.search_method is SearchMethod.LEXICAL_FALLBACK
        assert "HTTP 503" in search.fallback_reason
        assert len(search.candidates) == 1

    @pytest.mark.asyncio
    async def test_inactive_faqs_excluded(self, generator, checkin_faq):
        search = await generator.generate("what time is check-in", [replace(checkin_faq, is_active=False)])

        assert search.candidates == ()
        assert search.scored_count == 0

    @pytest.mark.asyncio
    async def test_parking_does_not_match_wifi(self, generator, wifi_faq):
        search = await generator.generate("parking", [wifi_faq])
        assert search.candidates == ()
        assert search.scored_count == 1

    @pytest.mark.asyncio
    async def test_threshold_is_strict(self, checkin_faq):
        # Query contains the tag: score is exactly 0.7
        at_threshold = CandidateGenerator(RetrievalSettings(similarity_threshold=0.7))
        below_threshold = CandidateGenerator(RetrievalSettings(similarity_threshold=0.69))

        assert (await at_threshold.generate("what time is check-in", [checkin_faq])).candidates == ()
        assert len((await below_threshold.generate("what time is check-in", [checkin_faq])).candidates) == 1

    @pytest.mark.asyncio
    async def test_ties_keep_input_order(self, generator):
        faqs = [
            FAQEntry(question=f"Question {i}", answer="Answer", tags=("wifi",), id=str(i))
            for i in range(4)
        ]
        search = await generator.generate("wifi", faqs)

        assert [c.faq.id for c in search.candidates] == ["0", "1", "2", "3"]
        assert [c.position for c in search.candidates] == [0, 1, 2, 3]

    @pytest.mark.asyncio
    async def test_sorted_best_first_and_capped(self):
        generator = CandidateGenerator(RetrievalSettings(max_candidates=2))
        faqs = [
            FAQEntry(question="Pool towels?", answer="Yes", tags=("pool towels",)),  # contains query: 0.8
            FAQEntry(question="Pool?", answer="Yes", tags=("pool",)),                # exact: 1.0
            FAQEntry(question="Pool hours?", answer="7am", tags=("pool hours",)),    # contains query: 0.8
        ]
        search = await generator.generate("pool", faqs)

        assert [c.similarity_score for c in search.candidates] == [1.0, pytest.approx(0.8)]
        assert search.candidates[1].faq.question == "Pool towels?"

    @pytest.mark.asyncio
    async def test_malformed_records_skipped(self, generator, checkin_faq):
        faqs = [
            {"question": "", "answer": "no question"},
            "not a record",
            {"question": "What time is check-in?", "answer": "3pm", "tags": ["check-in"]},
            checkin_faq,
        ]
        search = await generator.generate("check-in", faqs)

        assert search.skipped_count == 2
        assert search.scored_count == 2
        assert len(search.candidates) == 2
        assert [c.position for c in search.candidates] == [2, 3]


class TestEmbeddingGeneration:
    """Candidate generation with an embedding provider."""

    @pytest.mark.asyncio
    async def test_cosine_scores(self, generator, embedded_faqs):
        provider = FakeEmbeddingProvider(default=[1.0, 0.0, 0.0])
        search = await generator.generate("when can I arrive", embedded_faqs, provider)

        assert search.search_method is SearchMethod.EMBEDDING
        assert provider.calls == ["when can I arrive"]
        assert [c.faq.question for c in search.candidates] == ["What time is check-in?", "Is parking available?"]
        assert all(c.match_method is MatchMethod.EMBEDDING for c in search.candidates)
        assert search.candidates[0].similarity_score == pytest.approx(1.0)
        assert search.candidates[1].similarity_score == pytest.approx(0.6)

    @pytest.mark.asyncio
    async def test_entries_without_embedding_scored_lexically(self, generator, embedded_faqs):
        faqs = embedded_faqs + [FAQEntry(question="Is breakfast included?", answer="Yes", tags=("breakfast",))]
        provider = FakeEmbeddingProvider(default=[0.0, 0.0, 1.0])
        search = await generator.generate("breakfast", faqs, provider)

        assert search.search_method is SearchMethod.EMBEDDING
        assert len(search.candidates) == 1
        assert search.candidates[0].match_method is MatchMethod.TAG

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        ProviderError("HTTP 500"),
        ConfigurationError("no key"),
        RuntimeError("boom"),
    ])
    async def test_provider_failure_falls_back(self, generator, embedded_faqs, error):
        provider = FakeEmbeddingProvider(error=error)
        search = await generator.generate("what time is check-in", embedded_faqs, provider)

        assert search.search_method is SearchMethod.LEXICAL_FALLBACK
        assert search.fallback_reason
        assert search.candidates[0].match_method is MatchMethod.TAG

    @pytest.mark.asyncio
    async def test_provider_timeout_falls_back(self, embedded_faqs):
        generator = CandidateGenerator(RetrievalSettings(provider_timeout=0.01))
        provider = FakeEmbeddingProvider(delay=1.0)
        search = await generator.generate("what time is check-in", embedded_faqs, provider)

        assert search.search_method is SearchMethod.LEXICAL_FALLBACK
        assert "timed out" in search.fallback_reason

    @pytest.mark.asyncio
    async def test_empty_vector_falls_back(self, generator, embedded_faqs):
        provider = AsyncMock()
        provider.embed.return_value = []
        search = await generator.generate("wifi", embedded_faqs, provider)

        assert search.search_method is SearchMethod.LEXICAL_FALLBACK
        assert "empty vector" in search.fallback_reason

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, generator, embedded_faqs):
        started = asyncio.Event()

        class BlockingProvider:
            async def embed(self, text):
                started.set()
                await asyncio.Event().wait()

        task = asyncio.ensure_future(generator.generate("wifi", embedded_faqs, BlockingProvider()))
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

    @pytest.mark.asyncio
    async def test_deterministic(self, generator, embedded_faqs):
        provider = FakeEmbeddingProvider(default=[0.5, 0.5, 0.0])
        first = await generator.generate("parking", embedded_faqs, provider)
        second = await generator.generate("parking", embedded_faqs, provider)
        assert first == second
