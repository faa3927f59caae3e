"""Unit tests for ChatService -- retrieval-augmented answers with citations."""

from __future__ import annotations

import pytest

from conftest import InMemoryVectorStore, KeywordEmbeddingProvider, ScriptedLLMProvider, keyword_vector
from rag_feeder.config.settings import Settings
from rag_feeder.models.rag import ChatTurn, Document, DocumentChunk, ProcessingStatus
from rag_feeder.providers.document_store.sqlite_document_store import SQLiteDocumentStore
from rag_feeder.services.chat_service import NO_ANSWER, UNKNOWN_TITLE, ChatService
from rag_feeder.services.retrieval_service import RetrievalService
from rag_feeder.utils.errors import CompletionProviderError, ValidationError


def _chunk(chunk_id: str, document_id: str, content: str, index: int = 0, tenant_id: str = "acme") -> DocumentChunk:
    return DocumentChunk(
        chunk_id=chunk_id,
        document_id=document_id,
        tenant_id=tenant_id,
        chunk_index=index,
        content=content,
        embedding=keyword_vector(content),
    )


async def _add_document(store: SQLiteDocumentStore, document_id: str, title: str) -> None:
    await store.create(
        Document(
            document_id=document_id,
            tenant_id="acme",
            title=title,
            content="x" * 60,
            processing_status=ProcessingStatus.COMPLETED,
        )
    )


def _make_service(
    llm,
    vector_store: InMemoryVectorStore,
    document_store: SQLiteDocumentStore,
    embedder: KeywordEmbeddingProvider | None = None,
    **settings_overrides,
) -> ChatService:
    settings = Settings(_env_file=None, **settings_overrides)
    retrieval = RetrievalService(embedder or KeywordEmbeddingProvider(), vector_store, settings)
    return ChatService(retrieval, llm, document_store, settings)


@pytest.fixture
def torque_store() -> InMemoryVectorStore:
    store = InMemoryVectorStore()
    store.chunks = [
        _chunk("t0", "doc-torque", "Oil filter torque: 25 ft-lbs.", 0),
        _chunk("t1", "doc-torque", "Oil filter torque applies to the engine oil filter housing.", 1),
        _chunk("b0", "doc-bulletin", "Bulletin: oil filter gasket recall.", 0),
        _chunk("x0", "doc-brake", "Brake pad wear limits.", 0),
        _chunk("f0", "doc-foreign", "Oil filter torque for another fleet.", 0, tenant_id="other-co"),
    ]
    return store


class TestValidation:
    @pytest.mark.asyncio()
    @pytest.mark.parametrize("query", ["", "   \n"])
    async def test_empty_query_makes_no_provider_calls(
        self, query: str, document_store: SQLiteDocumentStore, torque_store: InMemoryVectorStore
    ) -> None:
        embedder = KeywordEmbeddingProvider()
        llm = ScriptedLLMProvider()

        with pytest.raises(ValidationError, match="Query is required for chat action"):
            await _make_service(llm, torque_store, document_store, embedder).chat(query, "acme")

        assert embedder.calls == []
        assert llm.complete_calls == []


class TestPromptAssembly:
    @pytest.mark.asyncio()
    async def test_context_numbered_with_titles(
        self, document_store: SQLiteDocumentStore, torque_store: InMemoryVectorStore
    ) -> None:
        await _add_document(document_store, "doc-torque", "Oil Filter Torque Spec")
        await _add_document(document_store, "doc-bulletin", "Gasket Bulletin")
        llm = ScriptedLLMProvider()

        await _make_service(llm, torque_store, document_store).chat("oil filter torque", "acme")

        prompt = llm.complete_calls[0]["system_prompt"]
        assert "[Source 1: Oil Filter Torque Spec]\nOil filter torque: 25 ft-lbs." in prompt
        assert "\n\n---\n\n" in prompt
        assert "Gasket Bulletin" in prompt
        assert "another fleet" not in prompt
        assert "Brake pad" not in prompt
        assert llm.complete_calls[0]["user_prompt"] == "oil filter torque"
        assert llm.complete_calls[0]["temperature"] == 0.7
        assert llm.complete_calls[0]["max_tokens"] == 1000

    @pytest.mark.asyncio()
    async def test_no_hits_uses_empty_knowledge_notice(self, document_store: SQLiteDocumentStore) -> None:
        llm = ScriptedLLMProvider()

        result = await _make_service(llm, InMemoryVectorStore(), document_store).chat("coolant mix?", "acme")

        assert "No relevant documents found in the knowledge base." in llm.complete_calls[0]["system_prompt"]
        assert result.sources == []

    @pytest.mark.asyncio()
    async def test_history_trimmed_to_recent_user_and_assistant_turns(
        self, document_store: SQLiteDocumentStore
    ) -> None:
        llm = ScriptedLLMProvider()
        history = [ChatTurn(role="user", content=f"q{i}") for i in range(5)]
        history += [ChatTurn(role="system", content="ignore me"), ChatTurn(role="assistant", content="a5")]

        await _make_service(llm, InMemoryVectorStore(), document_store).chat("next?", "acme", history=history)

        sent = llm.complete_calls[0]["history"]
        assert [t.content for t in sent] == ["q1", "q2", "q3", "q4", "a5"]

    @pytest.mark.asyncio()
    async def test_zero_history_turns_sends_no_history(self, document_store: SQLiteDocumentStore) -> None:
        llm = ScriptedLLMProvider()
        history = [ChatTurn(role="user", content="q0"), ChatTurn(role="assistant", content="a0")]
        service = _make_service(llm, InMemoryVectorStore(), document_store, chat_history_turns=0)

        await service.chat("next?", "acme", history=history)

        assert llm.complete_calls[0]["history"] == []

    @pytest.mark.asyncio()
    async def test_external_context_prompt(self, document_store: SQLiteDocumentStore, torque_store) -> None:
        llm = ScriptedLLMProvider(answer="Truck is healthy.")

        await _make_service(llm, torque_store, document_store).chat(
            "Summarize service history", "acme", external_context="VIN 1XKAD49X; 3 oil changes in 2025"
        )

        prompt = llm.complete_calls[0]["system_prompt"]
        assert "Vehicle Context:\nVIN 1XKAD49X; 3 oil changes in 2025" in prompt


class TestSources:
    @pytest.mark.asyncio()
    async def test_grouped_per_document_in_first_seen_order(
        self, document_store: SQLiteDocumentStore, torque_store: InMemoryVectorStore
    ) -> None:
        await _add_document(document_store, "doc-torque", "Oil Filter Torque Spec")
        llm = ScriptedLLMProvider()

        result = await _make_service(llm, torque_store, document_store).chat("oil filter torque", "acme")

        assert result.answer == "Torque the oil filter to 25 ft-lbs [Source 1]."
        assert [s.document_id for s in result.sources] == ["doc-torque", "doc-bulletin"]
        torque = result.sources[0]
        assert torque.title == "Oil Filter Torque Spec"
        assert torque.chunk_count == 2
        assert [c.source_index for c in torque.chunks] == [1, 2]
        assert torque.similarity == max(c.similarity for c in torque.chunks)
        assert result.sources[1].title == UNKNOWN_TITLE
        assert result.sources[1].chunks[0].source_index == 3

    @pytest.mark.asyncio()
    async def test_empty_answer_replaced(self, document_store: SQLiteDocumentStore) -> None:
        llm = ScriptedLLMProvider(answer="")
        result = await _make_service(llm, InMemoryVectorStore(), document_store).chat("hello", "acme")
        assert result.answer == NO_ANSWER

    @pytest.mark.asyncio()
    async def test_completion_failure_propagates(self, document_store: SQLiteDocumentStore, failing_llm_provider) -> None:
        with pytest.raises(CompletionProviderError):
            await _make_service(failing_llm_provider, InMemoryVectorStore(), document_store).chat("hello", "acme")
