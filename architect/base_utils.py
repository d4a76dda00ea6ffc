# architect/base_utils.py

import json
import logging
import re

from architect import settings
from architect.llm_client import ChatLlmClient

logger = logging.getLogger("prompt_architect")

_PLACEHOLDER_RE = re.compile(r'\{(\w+)\}')


def unsafe_string_format(dest_string, print_unused_keys_report=True, **kwargs):
    """
    Formats a destination string by replacing placeholders with corresponding values from kwargs.

    It works differently from the standard "format" method: instead of looking for all the potential keys,
    it looks only for the keys passed in kwargs, so literal JSON braces in prompts survive untouched.
    Placeholders with no matching key are left as they are.
    """
    missing_keys = []

    def replacer(match):
        key = match.group(1)
        if key in kwargs:
            return str(kwargs[key])
        missing_keys.append(key)
        return match.group(0)

    result = _PLACEHOLDER_RE.sub(replacer, dest_string)
    if missing_keys and print_unused_keys_report:
        logger.debug("Missing keys within string-to-format in unsafe_string_format: %s", ", ".join(missing_keys))
    return result


def json_preview(data) -> str:
    try:
        return json.dumps(data, indent=2, default=str)
    except Exception:
        return str(data)


class BaseUtils():
    llm_timeout: float = settings.LLM_TIMEOUT

    def unsafe_string_format(self, dest_string, print_unused_keys_report=True, **kwargs):
        return unsafe_string_format(dest_string, print_unused_keys_report, **kwargs)

    # -----------------------
    # LLM base plumbing
    # -----------------------

    def _build_llm_for_model(self, model_name: str, timeout: float | None = None):
        """
        Build a per-request chat client for the given model name.
        Falls back to None if creation fails (missing credentials, unknown provider).
        """
        if not timeout:
            timeout = self.llm_timeout
        try:
            return ChatLlmClient(
                model_name=model_name,
                vertex_project=settings.PROJECT_ID,
                vertex_region=settings.REGION,
                timeout=timeout,
            )
        except Exception as e:
            logger.warning("Could not initialize LLM client for %s: %s", model_name, e)
            return None
