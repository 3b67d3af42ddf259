"""Environment references in task properties.

Connection strings and client secrets are usually kept out of task config
files and referenced as ``${NAME}`` instead. Only the braced form is
expanded: secrets and account keys may contain a bare ``$``.

Uses python-dotenv for .env file loading.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Dict, Optional, Union

from dotenv import load_dotenv

from azure_tasks.lib.errors import InvalidOptionError

__all__ = ["expand_env_vars", "expand_options", "load_env_file"]

# ${NAME} or ${NAME:-fallback}
ENV_REFERENCE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")


def load_env_file(
    path: Optional[Union[str, Path]] = None,
    *,
    override: bool = False,
) -> bool:
    """Load a .env file into os.environ.

    Returns:
        True if a file was found and loaded.
    """
    return load_dotenv(dotenv_path=path, override=override)


def expand_env_vars(value: str, *, strict: bool = False) -> str:
    """Replace ``${NAME}`` references with environment values.

    ``${NAME:-fallback}`` uses the fallback when NAME is unset. Other
    unset references stay as written, or raise when ``strict`` is set.

    Example:
        >>> os.environ["STORAGE_ACCOUNT"] = "devstore"
        >>> expand_env_vars("AccountName=${STORAGE_ACCOUNT};Key=a$b")
        'AccountName=devstore;Key=a$b'
    """

    def replacer(match: re.Match[str]) -> str:
        name, fallback = match.group(1), match.group(2)
        env_value = os.environ.get(name)
        if env_value is not None:
            return env_value
        if fallback is not None:
            return fallback
        if strict:
            raise InvalidOptionError(
                f"Environment variable not set: {name}",
                option=name,
                suggestion="Export the variable or load it with --env-file.",
            )
        return match.group(0)

    return ENV_REFERENCE.sub(replacer, value)


def _expand(value: Any, strict: bool) -> Any:
    if isinstance(value, str):
        return expand_env_vars(value, strict=strict)
    if isinstance(value, dict):
        return {key: _expand(item, strict) for key, item in value.items()}
    if isinstance(value, list):
        return [_expand(item, strict) for item in value]
    return value


def expand_options(options: Dict[str, Any], *, strict: bool = False) -> Dict[str, Any]:
    """Expand references in every string of a nested task config mapping.

    Example:
        >>> os.environ["QUEUE"] = "orders"
        >>> expand_options({"connection": {"queue_name": "${QUEUE}"}})
        {'connection': {'queue_name': 'orders'}}
    """
    return _expand(options, strict)
