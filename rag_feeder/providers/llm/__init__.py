"""Completion provider adapters.

``OpenAILLMProvider`` implements ILLMProvider for OpenAI and any
OpenAI-compatible endpoint.  main.py builds it once and hands it to the
chat service and the vision extractor.
"""

from rag_feeder.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["OpenAILLMProvider"]
