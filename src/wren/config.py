"""Application configuration.

AppConfig is a frozen dataclass — immutable after creation, IDE-autocompletable,
no string-key dict lookups.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from wren.errors import ConfigurationError

_TRUTHY = frozenset({"1", "true", "yes", "on"})

_SIZE_UNITS = {"k": 1024, "m": 1024**2, "g": 1024**3}

DEFAULT_MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # 16 MB


def parse_size(value: int | str) -> int:
    """Bytes for an int or a size string such as ``"512"``, ``"64K"``, ``"2M"``, ``"1G"``."""
    if isinstance(value, int):
        return value
    text = value.strip().lower().removesuffix("b")
    multiplier = _SIZE_UNITS.get(text[-1:], 1)
    if multiplier != 1:
        text = text[:-1]
    try:
        number = float(text)
    except ValueError:
        msg = f"Invalid size {value!r}; expected bytes or a K/M/G suffix"
        raise ConfigurationError(msg) from None
    if number < 0:
        msg = f"Size must not be negative: {value!r}"
        raise ConfigurationError(msg)
    return int(number * multiplier)


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(debug=True, api_prefixes=("/api",))
    """

    # Rendering of failures (stack trace vs generic message)
    debug: bool = False

    # Routes whose path starts with one of these prefixes are API targets:
    # structured handler results are serialized to JSON instead of rejected.
    api_prefixes: tuple[str, ...] = ()

    # Methods used by @app.route when none are given
    default_methods: tuple[str, ...] = ("GET",)

    # Level applied to the "wren" logger by App (None leaves it untouched)
    log_level: str | None = None

    # Largest accepted request body in bytes, enforced by
    # RequestSizeLimitMiddleware (0 disables the check)
    max_content_length: int = DEFAULT_MAX_CONTENT_LENGTH

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> AppConfig:
        """Build a config from ``WREN_*`` environment variables.

        Recognized variables:

        - ``WREN_DEBUG``: ``1``/``true``/``yes``/``on`` enables debug.
        - ``WREN_API_PREFIXES``: comma-separated path prefixes.
        - ``WREN_LOG_LEVEL``: level name for the ``wren`` logger.
        - ``WREN_MAX_CONTENT_LENGTH``: byte count, or shorthand like ``2M``.
        """
        env = os.environ if environ is None else environ
        prefixes = tuple(
            p.strip() for p in env.get("WREN_API_PREFIXES", "").split(",") if p.strip()
        )
        return cls(
            debug=env.get("WREN_DEBUG", "").strip().lower() in _TRUTHY,
            api_prefixes=prefixes,
            log_level=env.get("WREN_LOG_LEVEL") or None,
            max_content_length=parse_size(
                env.get("WREN_MAX_CONTENT_LENGTH") or DEFAULT_MAX_CONTENT_LENGTH
            ),
        )
