"""Prefix and delimiter matching for bucket listings."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence


@dataclass(frozen=True)
class CommonPrefix:
    """An entry in the common-prefixes part of a listing."""

    prefix: str


@dataclass(frozen=True)
class PrefixMatch:
    """The result of matching a key against a prefix."""

    key: str
    common_prefix: bool = False
    matched_part: str = ""

    def as_common_prefix(self) -> CommonPrefix:
        return CommonPrefix(prefix=self.matched_part)


def _split(value: str, sep: str) -> list[str]:
    if sep == "":
        return list(value)
    return value.split(sep)


def _quote(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


@dataclass(frozen=True)
class Prefix:
    """A listing prefix with an optional delimiter."""

    has_prefix: bool = False
    prefix: str = ""
    has_delimiter: bool = False
    delimiter: str = ""

    @classmethod
    def from_query(cls, query: Mapping[str, Sequence[str]]) -> "Prefix":
        """Build a prefix from parsed query parameters (name to list of values)."""
        prefixes = query.get("prefix") or [""]
        delimiters = query.get("delimiter") or [""]
        return cls(
            has_prefix="prefix" in query,
            prefix=prefixes[0],
            has_delimiter="delimiter" in query,
            delimiter=delimiters[0],
        )

    def file_prefix(self) -> Optional[tuple[str, str]]:
        """Split the prefix into a path and a remainder when the delimiter is "/".

        Returns None when the delimiter is not "/".
        """
        if not self.has_prefix or not self.has_delimiter or self.delimiter != "/":
            return ("", "") if self.delimiter == "/" else None
        path, sep, remaining = self.prefix.rpartition("/")
        if not sep:
            return "", self.prefix
        return path, remaining

    def match(self, key: str) -> Optional[PrefixMatch]:
        """Match ``key`` against this prefix; None if it does not match."""
        if not self.has_prefix and not self.has_delimiter:
            return PrefixMatch(key=key, matched_part=key)

        if not self.has_delimiter:
            if key.startswith(self.prefix):
                return PrefixMatch(key=key, matched_part=self.prefix)
            return None

        delim = self.delimiter
        key_parts = _split(key.lstrip(delim), delim)
        pre_parts = _split(self.prefix.lstrip(delim), delim)

        if len(key_parts) < len(pre_parts) or not pre_parts:
            return None

        *leading, last = pre_parts
        if key_parts[: len(leading)] != leading:
            return None
        if not key_parts[len(leading)].startswith(last):
            return None

        matched = len(pre_parts)
        out = delim.join(key_parts[:matched])
        if len(key_parts) != len(pre_parts):
            out += delim

        return PrefixMatch(key=key, common_prefix=out != key, matched_part=out)

    def __str__(self) -> str:
        if self.has_delimiter:
            return f"prefix:{_quote(self.prefix)}, delim:{_quote(self.delimiter)}"
        return f"prefix:{_quote(self.prefix)}"


def new_prefix(prefix: Optional[str], delimiter: Optional[str]) -> Prefix:
    """Build a prefix; None means the part is absent."""
    return Prefix(
        has_prefix=prefix is not None,
        prefix=prefix or "",
        has_delimiter=delimiter is not None,
        delimiter=delimiter or "",
    )


def new_folder_prefix(prefix: str) -> Prefix:
    """Build a prefix delimited by "/"."""
    return Prefix(has_prefix=True, prefix=prefix, has_delimiter=True, delimiter="/")