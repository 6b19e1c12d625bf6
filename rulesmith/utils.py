"""Small helpers shared by rulesmith modules."""

import os
import re


def expand_env_vars(config: object) -> object:
    """Recursively expand environment variables in config.

    Replaces ${VAR} patterns with environment variable values. Unknown
    variables are left untouched.

    Args:
        config: Configuration object (dict, list, str, or primitive)

    Returns:
        Configuration with all ${VAR} patterns replaced
    """
    if isinstance(config, dict):
        return {k: expand_env_vars(v) for k, v in config.items()}  # type: ignore[misc]
    if isinstance(config, list):
        return [expand_env_vars(item) for item in config]
    if isinstance(config, str):

        def replace_env_var(match: re.Match[str]) -> str:
            return os.getenv(match.group(1), match.group(0))

        return re.sub(r"\$\{([^}]+)\}", replace_env_var, config)
    return config


def title_case_name(name: str) -> str:
    """``code_reviewer`` -> ``Code Reviewer``."""
    words = re.split(r"[_\-\s]+", name)
    return " ".join(word[:1].upper() + word[1:] for word in words if word)
