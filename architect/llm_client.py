# architect/llm_client.py
import logging
from typing import Any, Dict, List, Optional

from google.api_core.exceptions import ResourceExhausted, TooManyRequests
from openai import APIStatusError, OpenAI, RateLimitError
from langchain_google_vertexai import ChatVertexAI
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from architect.errors import (
    ArchitectError,
    SynthesisFailure,
    UpstreamQuotaExceeded,
    UpstreamRateLimited,
)
from architect.model_props import is_openai_model, parse_model_name, strip_provider_prefix

logger = logging.getLogger("prompt_architect")

_RATE_LIMIT_TYPES = (RateLimitError, ResourceExhausted, TooManyRequests)


def classify_llm_error(e: Exception) -> ArchitectError:
    """
    Map a provider exception onto the upstream taxonomy.

    Classification reads the SDK exception type and its HTTP status or error code.
    The only text markers are the provider error codes themselves: OpenAI puts
    'insufficient_quota' in the body of a 429, Vertex reports RESOURCE_EXHAUSTED.
    Quota is checked before rate limiting.
    """
    if isinstance(e, ArchitectError):
        return e

    status = getattr(e, "status_code", None)
    code = getattr(e, "code", None)
    if status is None and isinstance(code, int):
        # google.api_core exceptions carry the HTTP status as `code`
        status = code
    code = str(code or "").lower()
    msg = str(e).lower()

    if status == 402 or code == "insufficient_quota" or "insufficient_quota" in msg:
        return UpstreamQuotaExceeded(str(e))
    if isinstance(e, _RATE_LIMIT_TYPES) or status == 429 or "resource_exhausted" in msg:
        return UpstreamRateLimited(str(e))
    if isinstance(e, APIStatusError):
        return SynthesisFailure(f"generation service returned HTTP {status}")
    return SynthesisFailure(str(e) or e.__class__.__name__)


class BaseLlmClient:
    """
    Token usage accounting shared by the providers.
    """

    last_usage: Optional[Dict[str, int]]

    def _add_usage(self, inc: Dict[str, int]) -> None:
        if self.last_usage is None:
            self.last_usage = dict(inc)
            return
        for k, v in inc.items():
            self.last_usage[k] = (self.last_usage.get(k, 0) or 0) + (v or 0)

    def _merge_openai_usage(self, resp: Any) -> None:
        usage = getattr(resp, "usage", None) if resp is not None else None
        if usage is None:
            return
        self._add_usage({
            "prompt_token_count": getattr(usage, "input_tokens", 0) or 0,
            "candidates_token_count": getattr(usage, "output_tokens", 0) or 0,
            "total_token_count": getattr(usage, "total_tokens", 0) or 0,
        })

    def _merge_vertex_usage(self, usage_metadata: Any) -> None:
        if not usage_metadata:
            return

        def get(*keys: str) -> int:
            for k in keys:
                if isinstance(usage_metadata, dict):
                    v = usage_metadata.get(k)
                else:
                    v = getattr(usage_metadata, k, None)
                if v:
                    return int(v)
            return 0

        self._add_usage({
            "prompt_token_count": get("prompt_token_count", "input_tokens"),
            "candidates_token_count": get("candidates_token_count", "output_tokens"),
            "total_token_count": get("total_token_count", "total_tokens"),
        })

    def get_usage(self) -> Dict[str, int]:
        return dict(self.last_usage or {})


class ChatLlmClient(BaseLlmClient):
    """
    Minimal wrapper for chat-style use:

        text = chat_llm.invoke([SystemMessage(...), HumanMessage(...)])

    Under the hood:
    - Vertex: ChatVertexAI.invoke(messages)
    - OpenAI: Responses API with input=[{role, content}, ...]

    One HTTP call per invoke. Retrying is the caller's decision, so both SDKs
    are built with retries disabled and failures come back classified.
    """

    def __init__(
        self,
        model_name: str,
        *,
        vertex_project: str,
        vertex_region: str,
        timeout: float | None = None,
    ):
        self.provider = "openai" if is_openai_model(model_name) else "vertex"
        self.model_name = strip_provider_prefix(model_name)
        self._timeout = timeout
        self.last_usage: Optional[Dict[str, int]] = None
        self._openai_params: Dict[str, Any] = {}

        if self.provider == "vertex":
            self._vertex = ChatVertexAI(
                project=vertex_project,
                location=vertex_region,
                model_name=self.model_name,
                timeout=timeout,
                max_retries=0,
            )
            self._client = None
        else:
            self._vertex = None
            self._api_model, self._openai_params = parse_model_name(self.model_name)
            client_kwargs: Dict[str, Any] = {"max_retries": 0}
            if timeout is not None:
                client_kwargs["timeout"] = timeout
            self._client = OpenAI(**client_kwargs)

    def _to_openai_messages(self, messages: List[BaseMessage]) -> List[Dict[str, str]]:
        out: List[Dict[str, str]] = []
        for m in messages:
            if isinstance(m, SystemMessage):
                role = "developer"
            elif isinstance(m, AIMessage):
                role = "assistant"
            else:
                role = "user"
            out.append({"role": role, "content": str(m.content)})
        return out

    def _invoke_once(self, messages: List[BaseMessage]) -> str:
        if self.provider == "vertex":
            resp = self._vertex.invoke(messages)

            usage_md = getattr(resp, "usage_metadata", None)
            if usage_md is None:
                rm = getattr(resp, "response_metadata", None)
                if isinstance(rm, dict):
                    usage_md = rm.get("usage_metadata")
            self._merge_vertex_usage(usage_md)

            if isinstance(resp, str):
                return resp
            return str(getattr(resp, "content", resp))

        resp = self._client.responses.create(
            model=self._api_model,
            input=self._to_openai_messages(messages),
            **self._openai_params,
        )
        self._merge_openai_usage(resp)
        return (getattr(resp, "output_text", "") or "").strip()

    def invoke(self, messages: List[BaseMessage]) -> str:
        try:
            return self._invoke_once(messages)
        except Exception as e:
            err = classify_llm_error(e)
            logger.warning("[LLM] %s call failed (%s): %s", self.model_name, err.__class__.__name__, e)
            raise err from e


def build_messages(system_prompt: str, user_prompt: str) -> List[BaseMessage]:
    return [SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)]
