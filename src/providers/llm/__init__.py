"""LLM provider adapters (the classification oracle).

Three concrete implementations of ILLMProvider (src/interfaces/llm_provider.py):
    - AnthropicLLMProvider: Claude via the Messages API
    - OpenAILLMProvider: gpt-4o-mini, or any OpenAI-compatible API
    - OllamaLLMProvider: local models via an Ollama server (llama3.1)

main.py picks the first provider whose key or URL is configured.  When none
is, the classifier and chat service run on their keyword fallbacks alone.
"""

from src.providers.llm.anthropic_provider import AnthropicLLMProvider
from src.providers.llm.ollama_provider import OllamaLLMProvider
from src.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["AnthropicLLMProvider", "OllamaLLMProvider", "OpenAILLMProvider"]
