"""
Inference Providers for Chat Simulation

Abstract base class and implementations for the generative backends.
"""

from .base import InferenceProvider, CompletionResult, ProviderError
from .gemini import GeminiProvider
from .mock import MockProvider

__all__ = [
    # Base
    "InferenceProvider",
    "CompletionResult",
    "ProviderError",
    # Providers
    "GeminiProvider",
    "MockProvider",
]
