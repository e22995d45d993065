"""
AI Services
===========
Language-model backends and the government scheme matcher.

Services:
- LLMBackend / create_backend: OpenAI or Anthropic chat backends
- LLMSchemeMatcher: maps a plant profile and incident to funding schemes
"""

from app.services.ai.llm_backends import AnthropicBackend, LLMBackend, LLMResponse, OpenAIBackend, create_backend
from app.services.ai.scheme_matcher import LLMSchemeMatcher, SchemeMatcher, parse_schemes

__all__ = [
    "AnthropicBackend",
    "LLMBackend",
    "LLMResponse",
    "OpenAIBackend",
    "create_backend",
    "LLMSchemeMatcher",
    "SchemeMatcher",
    "parse_schemes",
]
