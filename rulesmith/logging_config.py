"""rulesmith logging configuration.

rulesmith uses the shared InstruktAI logging standard (`instrukt_ai_logging`).
The CLI configures logging once per invocation; library modules only call
`get_logger(__name__)`.
"""

from __future__ import annotations

import os
from typing import Optional

from instrukt_ai_logging import configure_logging


def setup_logging(level: Optional[str] = None) -> None:
    """Configure rulesmith logging.

    Args:
        level: Optional override for `RULESMITH_LOG_LEVEL`.
    """
    if level:
        os.environ["RULESMITH_LOG_LEVEL"] = level

    configure_logging("rulesmith")
