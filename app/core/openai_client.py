from openai import AsyncOpenAI
from app.core.config import settings


class OpenAIClientSingleton:
    """
    Singleton pattern for OpenAI client to avoid multiple initializations.

    The client is built on first use so that importing the app does not
    require an API key. SDK-level retries are disabled: a failed
    extraction is recorded on its task and never silently repeated.
    """
    _instance = None
    _client = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(OpenAIClientSingleton, cls).__new__(cls)
        return cls._instance

    @property
    def client(self) -> AsyncOpenAI:
        """Returns the OpenAI async client instance."""
        if self._client is None:
            type(self)._client = AsyncOpenAI(
                api_key=settings.OPENAI_API_KEY,
                max_retries=0,
                timeout=settings.EXTRACTION_TIMEOUT_SECONDS,
            )
        return self._client


def get_openai_client() -> AsyncOpenAI:
    return OpenAIClientSingleton().client
