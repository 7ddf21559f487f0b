"""
LLM Provider Module
===================

Abstraction layer for the LLM backends that write governance narratives.

Supported providers:
- Anthropic Claude (primary)
- Ollama (local)

Usage:
    from shared.llm import get_llm_provider

    provider = get_llm_provider()
    text = await provider.generate_text("Summarise this submission ...")
"""

from shared.llm.provider import (
    LLMMessage,
    LLMProvider,
    LLMResponse,
    LLMUsage,
    extract_json_object,
    get_llm_provider,
    reset_llm_provider,
    set_llm_provider,
)

__all__ = [
    "LLMProvider",
    "LLMMessage",
    "LLMResponse",
    "LLMUsage",
    "extract_json_object",
    "get_llm_provider",
    "set_llm_provider",
    "reset_llm_provider",
]
