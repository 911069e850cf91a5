import httpx

from ai.providers.base import AIProvider, ProviderError


class GoogleProvider(AIProvider):
    """Google Gemini provider."""

    BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"
    DEFAULT_MODEL = "gemini-2.0-flash"

    def _endpoint(self, model: str) -> str:
        return f"{self.BASE_URL}/{model}:generateContent"

    @staticmethod
    def _convert_messages(messages: list[dict]) -> list[dict]:
        """Convert role/content messages to Gemini contents."""
        contents = []
        for msg in messages:
            # Gemini uses "user" and "model" roles
            role = "model" if msg.get("role") == "assistant" else "user"
            text = msg.get("content", "")
            contents.append({"role": role, "parts": [{"text": text if isinstance(text, str) else str(text)}]})
        return contents

    async def chat(self, messages: list[dict], system: str = "") -> dict:
        model = self.get_model()
        payload: dict = {"contents": self._convert_messages(messages)}
        if system:
            payload["system_instruction"] = {"parts": [{"text": system}]}

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                resp = await client.post(
                    self._endpoint(model),
                    headers={"Content-Type": "application/json", "x-goog-api-key": self.api_key},
                    json=payload,
                )
        except httpx.HTTPError as exc:
            raise ProviderError(f"Google API request failed: {exc}") from exc

        if resp.status_code != 200:
            raise ProviderError(f"Google API error: {resp.text}", status_code=resp.status_code)
        data = resp.json()

        content = ""
        candidates = data.get("candidates", [])
        if candidates:
            for part in candidates[0].get("content", {}).get("parts", []):
                content += part.get("text", "")

        usage = data.get("usageMetadata", {})
        return {
            "content": content,
            "tokens_in": usage.get("promptTokenCount", 0),
            "tokens_out": usage.get("candidatesTokenCount", 0),
            "model": model,
        }
