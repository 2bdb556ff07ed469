"""Instrumented model provider wrappers."""

from agentbill.providers.base import ProviderError
from agentbill.providers.litellm_provider import LiteLLMWrapper
from agentbill.providers.openai import OpenAIWrapper

__all__ = ["LiteLLMWrapper", "OpenAIWrapper", "ProviderError"]
