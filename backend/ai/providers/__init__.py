from ai.providers.base import AIProvider, ProviderError
from ai.providers.google import GoogleProvider


def get_provider(
    provider_name: str,
    api_key: str,
    model: str | None = None,
    timeout_seconds: float = 60,
) -> AIProvider:
    providers = {
        "google": GoogleProvider,
    }
    cls = providers.get((provider_name or "").strip().lower())
    if not cls:
        raise ValueError(f"Unknown provider: {provider_name}")
    return cls(api_key=api_key, model=model, timeout_seconds=timeout_seconds)


__all__ = ["AIProvider", "GoogleProvider", "ProviderError", "get_provider"]
