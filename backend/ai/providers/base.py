from abc import ABC, abstractmethod


class ProviderError(Exception):
    """The text-generation provider rejected or failed a request."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class AIProvider(ABC):
    """Abstract base class for text-generation providers."""

    DEFAULT_MODEL: str = ""

    def __init__(self, api_key: str, model: str | None = None, timeout_seconds: float = 60):
        self.api_key = api_key
        self._model = model
        self.timeout_seconds = timeout_seconds

    @abstractmethod
    async def chat(self, messages: list[dict], system: str = "") -> dict:
        """Send a chat request to the provider.

        Args:
            messages: List of message dicts with role ("user" | "assistant") and content.
            system: Optional system prompt.

        Returns:
            dict with content, tokens_in, tokens_out, model.

        Raises:
            ProviderError if the provider answers with an error.
        """
        ...

    def get_model(self) -> str:
        return self._model or self.DEFAULT_MODEL
