"""Retrieval-augmented chat over a tenant's knowledge base.

Answers a maintenance question from the tenant's own manuals and
bulletins, citing the passages it used.

Data flow
---------
  1. VALIDATE  -- An empty query is rejected before any provider call.
  2. RETRIEVE  -- Embed the query and fetch the 5 best chunks at
                  similarity >= 0.5 for the tenant.
  3. CONTEXT   -- Number the chunks ``[Source 1: <title>]`` ... and join
                  them with ``---`` separators.
  4. GENERATE  -- System instruction (with the context) + the last 6
                  user/assistant turns + the question go to the
                  completion model.
  5. SOURCES   -- Chunks are grouped per document for the caller, each
                  excerpt keeping the index the model cites it by.

Nothing is persisted; conversation history belongs to the caller.
"""

from __future__ import annotations

from typing import Sequence

import structlog

from rag_feeder.config.settings import Settings
from rag_feeder.interfaces.document_store import IDocumentStore
from rag_feeder.interfaces.llm_provider import ILLMProvider
from rag_feeder.models.rag import ChatResult, ChatTurn, RetrievedChunk, SourceChunk, SourceReference
from rag_feeder.services.retrieval_service import RetrievalService
from rag_feeder.utils.deadline import Deadline
from rag_feeder.utils.errors import ValidationError
from rag_feeder.utils.logging import get_logger

logger: structlog.BoundLogger = get_logger(__name__)

UNKNOWN_TITLE = "Unknown Document"
NO_ANSWER = "Unable to generate response."
_CONTEXT_SEPARATOR = "\n\n---\n\n"
_NO_CONTEXT = "No relevant documents found in the knowledge base."


class ChatService:
    """Answers questions with citations from retrieved knowledge-base chunks.

    Parameters
    ----------
    retrieval:
        Embeds the question and runs the tenant-filtered search.
    llm:
        Completion model that writes the answer.
    document_store:
        Resolves chunk parent ids to document titles.
    settings:
        Retrieval limits, history window, sampling and deadline.
    """

    _SYSTEM_PROMPT = (
        "You are a knowledgeable assistant for a truck repair shop. Answer questions "
        "based on the provided context from service manuals and technical documents.\n\n"
        "IMPORTANT INSTRUCTIONS:\n"
        "- Always cite your sources by referencing [Source X] when using information "
        "from the context\n"
        "- If the answer comes from multiple sources, cite all relevant sources\n"
        "- If the answer is not in the context, clearly say you don't have that "
        "information in the knowledge base\n"
        "- Be concise but thorough\n\n"
        "Context from knowledge base:\n{context}"
    )

    _EXTERNAL_CONTEXT_PROMPT = (
        "You are a knowledgeable assistant for a truck repair shop. You are helping "
        "summarize and analyze truck service history.\n\n"
        "Vehicle Context:\n{external_context}\n\n"
        "{knowledge}"
        "IMPORTANT INSTRUCTIONS:\n"
        "- Cite knowledge-base passages by referencing [Source X]\n"
        "- If the answer is not in the provided context, say so\n"
        "- Be concise but thorough\n"
        "- Focus on key patterns, recurring issues, and overall vehicle health\n"
        "- If summarizing history, highlight important repairs and maintenance trends"
    )

    def __init__(
        self,
        retrieval: RetrievalService,
        llm: ILLMProvider,
        document_store: IDocumentStore,
        settings: Settings,
    ) -> None:
        self._retrieval = retrieval
        self._llm = llm
        self._documents = document_store
        self._top_k = settings.chat_top_k
        self._min_similarity = settings.chat_min_similarity
        self._history_turns = settings.chat_history_turns
        self._temperature = settings.chat_temperature
        self._max_tokens = settings.chat_max_tokens
        self._deadline_seconds = settings.chat_deadline_seconds

    async def chat(
        self,
        query: str,
        tenant_id: str,
        history: Sequence[ChatTurn] = (),
        external_context: str | None = None,
    ) -> ChatResult:
        """Answer *query* from the tenant's knowledge base.

        Parameters
        ----------
        query:
            The user's question.
        tenant_id:
            Only this tenant's chunks are retrieved.
        history:
            Prior turns, oldest first.  Only the most recent
            ``chat_history_turns`` are sent, and of those only user and
            assistant turns.
        external_context:
            Caller-supplied background (e.g. a vehicle's service record)
            that the answer should take into account.

        Raises
        ------
        ValidationError
            If *query* is empty or whitespace.  No provider is called.
        rag_feeder.utils.errors.ProviderError
            If embedding or completion fails.
        """
        if not query or not query.strip():
            raise ValidationError("Query is required for chat action")

        deadline = Deadline.after(self._deadline_seconds)
        hits = await self._retrieval.search(
            query,
            tenant_id,
            top_k=self._top_k,
            min_similarity=self._min_similarity,
            deadline=deadline,
        )
        titles = await self._documents.get_titles(sorted({h.chunk.document_id for h in hits}))

        context = self._build_context(hits, titles)
        system_prompt = self._build_system_prompt(context, external_context)
        window = list(history)[-self._history_turns :] if self._history_turns > 0 else []
        recent = [t for t in window if t.role in ("user", "assistant")]

        answer = await self._llm.complete(
            system_prompt=system_prompt,
            user_prompt=query,
            history=recent,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
            deadline=deadline,
        )
        sources = self._group_sources(hits, titles)

        logger.info(
            "chat_answered",
            tenant_id=tenant_id,
            chunks=len(hits),
            sources=len(sources),
            history_turns=len(recent),
            external_context=bool(external_context),
        )
        return ChatResult(answer=answer or NO_ANSWER, sources=sources)

    # ------------------------------------------------------------------
    # Prompt assembly
    # ------------------------------------------------------------------

    @staticmethod
    def _build_context(hits: list[RetrievedChunk], titles: dict[str, str]) -> str:
        parts = [
            f"[Source {idx}: {titles.get(hit.chunk.document_id, UNKNOWN_TITLE)}]\n{hit.chunk.content}"
            for idx, hit in enumerate(hits, start=1)
        ]
        return _CONTEXT_SEPARATOR.join(parts)

    def _build_system_prompt(self, context: str, external_context: str | None) -> str:
        if external_context and external_context.strip():
            knowledge = f"Additional context from knowledge base:\n{context}\n\n" if context else ""
            return self._EXTERNAL_CONTEXT_PROMPT.format(
                external_context=external_context.strip(),
                knowledge=knowledge,
            )
        return self._SYSTEM_PROMPT.format(context=context or _NO_CONTEXT)

    @staticmethod
    def _group_sources(hits: list[RetrievedChunk], titles: dict[str, str]) -> list[SourceReference]:
        """Group hits per document, keeping first-seen order and the best similarity."""
        grouped: dict[str, dict] = {}
        for idx, hit in enumerate(hits, start=1):
            doc_id = hit.chunk.document_id
            entry = grouped.setdefault(
                doc_id,
                {"title": titles.get(doc_id, UNKNOWN_TITLE), "similarity": hit.similarity, "chunks": []},
            )
            entry["similarity"] = max(entry["similarity"], hit.similarity)
            entry["chunks"].append(
                SourceChunk(
                    chunk_id=hit.chunk.chunk_id,
                    content=hit.chunk.content,
                    similarity=hit.similarity,
                    source_index=idx,
                )
            )
        return [
            SourceReference(document_id=doc_id, title=e["title"], similarity=e["similarity"], chunks=e["chunks"])
            for doc_id, e in grouped.items()
        ]
