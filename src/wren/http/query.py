"""Immutable multi-valued parameters (query string and form body).

Implements ``Mapping[str, str]``: ``params[key]`` is the first value,
``get_list`` returns all of them.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from urllib.parse import parse_qs, urlencode


class QueryParams(Mapping[str, str]):
    """Immutable query or form parameters."""

    __slots__ = ("_data",)

    _data: dict[str, list[str]]

    def __init__(
        self,
        data: Mapping[str, str | Iterable[str]] | None = None,
    ) -> None:
        parsed: dict[str, list[str]] = {}
        for key, value in (data or {}).items():
            parsed[key] = [value] if isinstance(value, str) else list(value)
        object.__setattr__(self, "_data", parsed)

    @classmethod
    def parse(cls, query_string: str | bytes) -> QueryParams:
        """Parse an ``application/x-www-form-urlencoded`` string."""
        if isinstance(query_string, bytes):
            query_string = query_string.decode("latin-1")
        return cls(parse_qs(query_string, keep_blank_values=True))

    def __getitem__(self, key: str) -> str:
        return self._data[key][0]

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        items = ", ".join(f"{k!r}: {self[k]!r}" for k in self)
        return f"QueryParams({{{items}}})"

    def get(self, key: str, default: str | None = None) -> str | None:  # type: ignore[override]
        """Return the first value for *key*, or *default* if missing."""
        values = self._data.get(key)
        if values:
            return values[0]
        return default

    def get_list(self, key: str) -> list[str]:
        """Return all values for *key*."""
        return list(self._data.get(key, []))

    def get_int(self, key: str, default: int | None = None) -> int | None:
        """Return value as int, or *default* if missing or not numeric."""
        value = self.get(key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            return default

    def encode(self) -> str:
        """Re-encode as an ``application/x-www-form-urlencoded`` string."""
        return urlencode([(key, value) for key, values in self._data.items() for value in values])
