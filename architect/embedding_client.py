# architect/embedding_client.py
import logging
from typing import List, Optional

from openai import OpenAI

from architect import settings

logger = logging.getLogger("prompt_architect")


class EmbeddingUnavailable(RuntimeError):
    pass


class EmbeddingClient:
    """
    Dense query vectors through the OpenAI embeddings API.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self.model = model or settings.OPENAI_EMBEDDING_MODEL
        self._timeout = timeout or settings.LLM_TIMEOUT
        self._client: Optional[OpenAI] = None

    def _get_client(self) -> OpenAI:
        if not self.api_key:
            raise EmbeddingUnavailable("OPENAI_API_KEY is not set; cannot generate embeddings.")
        if self._client is None:
            self._client = OpenAI(api_key=self.api_key, timeout=self._timeout, max_retries=0)
        return self._client

    def embed(self, text: str) -> List[float]:
        resp = self._get_client().embeddings.create(model=self.model, input=text)
        return list(resp.data[0].embedding)
