"""Model service clients (embedding + text generation) with error handling.

Both clients expose the same two capabilities used by the RAG pipeline:

- ``embed(text) -> List[float]``
- ``generate(prompt) -> str``

Errors are logged and re-raised as ``httpx`` exceptions (or ``ValueError``
for malformed payloads); wrapping into domain errors happens in the RAG layer.
"""
from typing import Any, Dict, List, Optional
import httpx
import structlog

from rightsteps import config

logger = structlog.get_logger()


class GeminiClient:
    """Async client for the Google Generative Language REST API."""

    def __init__(
        self,
        api_key: str = None,
        base_url: str = None,
        chat_model: str = None,
        embedding_model: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize Gemini client.

        Args:
            api_key: API key (defaults to config.GEMINI_API_KEY)
            base_url: API base URL including version (defaults to config.GEMINI_BASE_URL)
            chat_model: Generation model (defaults to config.GEMINI_CHAT_MODEL)
            embedding_model: Embedding model (defaults to config.GEMINI_EMBEDDING_MODEL)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.api_key = api_key if api_key is not None else config.GEMINI_API_KEY
        self.base_url = (base_url or config.GEMINI_BASE_URL).rstrip("/")
        self.chat_model = chat_model or config.GEMINI_CHAT_MODEL
        self.embedding_model = embedding_model or config.GEMINI_EMBEDDING_MODEL
        self.timeout = timeout or config.REQUEST_TIMEOUT
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            headers={"x-goog-api-key": self.api_key},
        )

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        async with self._client() as client:
            response = await client.post(f"{self.base_url}/{path}", json=payload)
            response.raise_for_status()
            return response.json()

    async def generate(self, prompt: str) -> str:
        """Run a single generateContent call and return the response text.

        Raises:
            httpx.HTTPError: On API errors
            ValueError: If the response carries no text
        """
        payload = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}

        logger.info(
            "gemini_generate_request",
            model=self.chat_model,
            prompt_length=len(prompt),
        )

        try:
            data = await self._post(f"models/{self.chat_model}:generateContent", payload)
        except httpx.HTTPError as e:
            logger.error(
                "gemini_generate_error",
                error=str(e),
                status_code=getattr(getattr(e, "response", None), "status_code", None),
            )
            raise

        candidates = data.get("candidates") or []
        if not candidates:
            feedback = data.get("promptFeedback", {})
            raise ValueError(f"No candidates returned (feedback: {feedback})")

        parts = candidates[0].get("content", {}).get("parts", [])
        text = "".join(part.get("text", "") for part in parts)

        logger.info(
            "gemini_generate_response",
            model=self.chat_model,
            response_length=len(text),
        )

        return text

    async def embed(self, text: str) -> List[float]:
        """Embed a single text with embedContent.

        Raises:
            httpx.HTTPError: On API errors
        """
        payload = {
            "model": f"models/{self.embedding_model}",
            "content": {"parts": [{"text": text}]},
        }

        try:
            logger.debug(
                "gemini_embedding_request",
                model=self.embedding_model,
                text_length=len(text),
            )
            data = await self._post(f"models/{self.embedding_model}:embedContent", payload)
        except httpx.HTTPError as e:
            logger.error("gemini_embedding_error", error=str(e))
            raise

        values = data.get("embedding", {}).get("values", [])

        logger.debug(
            "gemini_embedding_response",
            model=self.embedding_model,
            dimension=len(values),
        )

        return values

    async def ping(self) -> bool:
        """Check the API key and model are reachable."""
        async with self._client() as client:
            response = await client.get(f"{self.base_url}/models/{self.chat_model}")
            response.raise_for_status()
        return True


class OllamaClient:
    """Async client for interacting with Ollama API."""

    def __init__(
        self,
        base_url: str = None,
        chat_model: str = None,
        embedding_model: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize Ollama client.

        Args:
            base_url: Ollama API base URL (defaults to config.OLLAMA_BASE_URL)
            chat_model: Chat model (defaults to config.CHAT_MODEL)
            embedding_model: Embedding model (defaults to config.EMBEDDING_MODEL)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = (base_url or config.OLLAMA_BASE_URL).rstrip("/")
        self.chat_model = chat_model or config.CHAT_MODEL
        self.embedding_model = embedding_model or config.EMBEDDING_MODEL
        self.timeout = timeout or config.REQUEST_TIMEOUT
        self._transport = transport

    async def generate(self, prompt: str) -> str:
        """Send the prompt as a single user turn to /api/chat.

        Raises:
            httpx.HTTPError: On API errors
            httpx.ConnectError: If Ollama service is unavailable
        """
        payload = {
            "model": self.chat_model,
            "messages": [{"role": "user", "content": prompt}],
            "stream": False,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                logger.info(
                    "ollama_chat_request",
                    model=self.chat_model,
                    prompt_length=len(prompt),
                )

                response = await client.post(f"{self.base_url}/api/chat", json=payload)
                response.raise_for_status()

                data = response.json()
                content = data.get("message", {}).get("content", "")

                logger.info(
                    "ollama_chat_response",
                    model=self.chat_model,
                    response_length=len(content),
                )

                return content

        except httpx.ConnectError as e:
            logger.error("ollama_connection_error", error=str(e), base_url=self.base_url)
            raise
        except httpx.HTTPError as e:
            logger.error(
                "ollama_http_error",
                error=str(e),
                status_code=getattr(getattr(e, "response", None), "status_code", None),
            )
            raise

    async def embed(self, text: str) -> List[float]:
        """Generate an embedding for a text.

        Raises:
            httpx.HTTPError: On API errors
        """
        payload = {
            "model": self.embedding_model,
            "prompt": text,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                logger.debug(
                    "ollama_embedding_request",
                    model=self.embedding_model,
                    prompt_length=len(text),
                )

                response = await client.post(f"{self.base_url}/api/embeddings", json=payload)
                response.raise_for_status()

                data = response.json()

                logger.debug(
                    "ollama_embedding_response",
                    model=self.embedding_model,
                    dimension=len(data.get("embedding", [])),
                )

                return data.get("embedding", [])

        except httpx.HTTPError as e:
            logger.error("ollama_embedding_error", error=str(e))
            raise

    async def list_models(self) -> List[str]:
        """List all available Ollama models."""
        try:
            async with httpx.AsyncClient(timeout=5.0, transport=self._transport) as client:
                response = await client.get(f"{self.base_url}/api/tags")
                response.raise_for_status()
                data = response.json()
                return [m["name"] for m in data.get("models", [])]
        except httpx.HTTPError as e:
            logger.error("ollama_list_models_error", error=str(e))
            raise

    async def ping(self) -> bool:
        """Check Ollama is reachable and the chat model is installed."""
        models = await self.list_models()
        return self.chat_model in models


def create_llm_client(provider: str = None):
    """Build the model client for the configured provider.

    Args:
        provider: "gemini" or "ollama" (defaults to config.LLM_PROVIDER)

    Raises:
        ValueError: For an unknown provider
    """
    provider = (provider or config.LLM_PROVIDER).lower()

    if provider == "gemini":
        return GeminiClient()
    if provider == "ollama":
        return OllamaClient()

    raise ValueError(f"Unknown LLM provider: {provider!r} (expected 'gemini' or 'ollama')")
