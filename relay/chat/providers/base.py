"""
Abstract Inference Provider

Base class for the generative-language backends behind the chat service.
A provider turns one prompt into one completion. Providers that can
constrain output to a JSON schema accept `response_schema`.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional
import logging

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """The provider answered, but not with anything usable."""


@dataclass
class CompletionResult:
    """Result from an inference call."""
    text: str
    tokens_used: int
    tokens_prompt: int
    model: str
    latency_ms: float
    
    @property
    def tokens_completion(self) -> int:
        """Tokens used for completion."""
        return self.tokens_used - self.tokens_prompt


class InferenceProvider(ABC):
    """
    Abstract base for all LLM providers.
    
    Implementations translate the unified interface to provider-specific
    APIs and raise on transport errors or empty output.
    """
    
    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier for logging."""
        ...
    
    @property
    @abstractmethod
    def model(self) -> str:
        """The model identifier being used."""
        ...
    
    @abstractmethod
    async def complete(
        self,
        prompt: str,
        max_tokens: int = 1024,
        temperature: float = 1.0,
        response_schema: Optional[dict] = None,
    ) -> CompletionResult:
        """
        Generate a single completion.
        
        Args:
            prompt: The prompt text
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature (default 1.0)
            response_schema: Optional JSON schema the output must follow
            
        Returns:
            CompletionResult with generated text and metadata
        """
        ...
    
    async def close(self) -> None:
        """Clean up resources. Override if provider needs cleanup."""
        pass
