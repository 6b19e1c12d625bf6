"""Token counting for verbose run summaries."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

import tiktoken
from instrukt_ai_logging import get_logger

from rulesmith.constants import TOKEN_ENCODING

logger = get_logger(__name__)


@lru_cache(maxsize=1)
def _encoding() -> "tiktoken.Encoding":
    return tiktoken.get_encoding(TOKEN_ENCODING)


def count_tokens(text: str) -> Optional[int]:
    """Number of tokens in ``text``, or None when the encoding is unavailable."""
    try:
        return len(_encoding().encode(text, disallowed_special=()))
    except Exception as exc:  # tiktoken downloads its ranks on first use
        logger.debug("token_count_unavailable", error=str(exc))
        return None


def format_tokens(count: Optional[int]) -> str:
    if count is None:
        return "? tokens"
    if count >= 1000:
        return f"{count / 1000:.1f}k tokens"
    return f"{count} tokens"
