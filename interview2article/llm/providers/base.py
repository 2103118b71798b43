"""Abstract base class for LLM providers.

Defines the interface that all LLM providers must implement.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from ..models import LLMRequest, LLMResponse


class LLMProvider(ABC):
    """Base interface for LLM providers.

    Providers translate vendor-neutral requests into a vendor call and map
    vendor errors onto the LLMError hierarchy. They never retry.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier: 'openai', 'anthropic', etc."""
        ...

    @property
    @abstractmethod
    def default_model(self) -> str:
        """Model used when a request leaves `model` empty."""
        ...

    @abstractmethod
    async def generate(self, request: LLMRequest) -> LLMResponse:
        """Send a completion request and return the whole response.

        Raises:
            AuthenticationError: Invalid or missing API key.
            RateLimitError: Rate limit exceeded.
            TimeoutError: Request timed out.
            InvalidRequestError: Malformed request.
            ContentFilterError: Response blocked by safety filters.
            ProviderError: Provider-side or connection failure.
        """
        ...

    @abstractmethod
    def stream(self, request: LLMRequest) -> AsyncIterator[str]:
        """Stream the completion as text deltas in arrival order.

        Empty deltas are never yielded. Raises the same errors as generate(),
        possibly after some deltas were already delivered.
        """
        ...

    @abstractmethod
    def supports(self, feature: str) -> bool:
        """Check if provider supports a capability ('streaming', 'system_message', ...)."""
        ...
