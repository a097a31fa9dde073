"""Process-wide request defaults and project-local compile options.

Two kinds of configuration live here:

* **Runtime defaults** -- a single mutable :class:`~codecapi.models.RuntimeDefaults`
  instance read by every executor at call time. Change it with
  :func:`set_defaults`, :func:`set_base_url` and :func:`set_token`; restore
  the built-in values with :func:`reset_defaults`. :func:`resolve_defaults`
  layers environment variables on top.
* **Compile options** -- :func:`load_compile_options` reads the ``"compile"``
  section (or the whole object) of ``./codecapi.json``.

Precedence for runtime defaults (high to low):
    1. Values passed explicitly to :func:`set_defaults` / the setters
    2. Environment variables (``CODECAPI_BASE_URL``, ``CODECAPI_TOKEN``,
       ``CODECAPI_TIMEOUT``) when :func:`resolve_defaults` is called
    3. Built-in defaults
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from codecapi.exceptions import ConfigError
from codecapi.models import CompileOptions, RuntimeDefaults

_PROJECT_CONFIG_FILENAME = "codecapi.json"

_ENV_BASE_URL = "CODECAPI_BASE_URL"
_ENV_TOKEN = "CODECAPI_TOKEN"
_ENV_TIMEOUT = "CODECAPI_TIMEOUT"


# --- Runtime defaults ---

_defaults: RuntimeDefaults = RuntimeDefaults()


def get_defaults() -> RuntimeDefaults:
    """Return the process-wide request defaults."""
    return _defaults


def set_defaults(defaults: Optional[RuntimeDefaults] = None, **overrides: Any) -> RuntimeDefaults:
    """Replace the process-wide request defaults.

    Args:
        defaults: A complete replacement. When ``None`` the current defaults
            are used as the starting point.
        **overrides: Individual fields to change, e.g. ``base_url=...``.

    Returns:
        The new defaults instance.

    Raises:
        ConfigError: If an override fails validation.
    """
    global _defaults
    base = defaults if defaults is not None else _defaults
    try:
        _defaults = RuntimeDefaults.model_validate({**base.model_dump(), **overrides})
    except ValidationError as exc:
        raise ConfigError(f"Invalid request defaults: {exc}") from exc
    return _defaults


def reset_defaults() -> None:
    """Restore the built-in request defaults."""
    global _defaults
    _defaults = RuntimeDefaults()


def set_base_url(base_url: str) -> None:
    set_defaults(base_url=base_url)


def set_token(token: Optional[str]) -> None:
    """Set (or with ``None`` clear) the bearer token sent with every request."""
    set_defaults(token=token)


def resolve_defaults() -> RuntimeDefaults:
    """Overlay ``CODECAPI_*`` environment variables onto the current defaults.

    Raises:
        ConfigError: If ``CODECAPI_TIMEOUT`` is not a number.
    """
    overrides: dict[str, Any] = {}
    base_url = os.environ.get(_ENV_BASE_URL)
    if base_url:
        overrides["base_url"] = base_url
    token = os.environ.get(_ENV_TOKEN)
    if token:
        overrides["token"] = token
    timeout = os.environ.get(_ENV_TIMEOUT)
    if timeout:
        try:
            overrides["timeout"] = float(timeout)
        except ValueError as exc:
            raise ConfigError(f"{_ENV_TIMEOUT} must be a number, got {timeout!r}") from exc
    return set_defaults(**overrides)


# --- Project config ---


def load_compile_options(path: Optional[Path] = None) -> CompileOptions:
    """Load :class:`~codecapi.models.CompileOptions` from ``./codecapi.json``.

    The file may hold the options at the top level or under a ``"compile"``
    key.

    Returns:
        The parsed options, or defaults if the file does not exist.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = path or Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return CompileOptions()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        if isinstance(data, dict) and isinstance(data.get("compile"), dict):
            data = data["compile"]
        return CompileOptions.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid project config at {path}: {exc}") from exc
