"""Catalog resolution.

The catalog is a static name -> url table. A run selects a subset of it
(the desired images), optionally adding inline name+url pairs that bypass
the catalog. Everything here is pure: validation happens before any I/O so a
bad entry is rejected without side effects.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import httpx

from .errors import ConfigError, InvalidCatalogEntry, UnknownImage

NAME_RE = re.compile(r"^[a-z0-9.-]+$")

# extension -> filesystem type of the mounted image
IMAGE_FILESYSTEMS: Mapping[str, str] = MappingProxyType({".iso": "iso9660"})


@dataclass(frozen=True)
class CatalogEntry:
    name: str
    url: str

    @property
    def extension(self) -> str:
        lower = self.url.lower()
        for ext in IMAGE_FILESYSTEMS:
            if lower.endswith(ext):
                return ext
        raise InvalidCatalogEntry(self.name, "url", "does not end with a recognised image extension")

    @property
    def filename(self) -> str:
        return f"{self.name}{self.extension}"

    @property
    def filesystem_type(self) -> str:
        return IMAGE_FILESYSTEMS[self.extension]


@dataclass(frozen=True)
class DesiredImageRef:
    name: str
    url: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: Any) -> "DesiredImageRef":
        """Accept either a bare name or a ``{name, url}`` mapping."""
        if isinstance(raw, str):
            return cls(name=raw)
        if isinstance(raw, dict) and isinstance(raw.get("name"), str):
            url = raw.get("url")
            if url is not None and not isinstance(url, str):
                raise ConfigError(f"desired image {raw['name']!r}: url must be a string")
            return cls(name=raw["name"], url=url)
        raise ConfigError(f"desired image must be a name or a {{name, url}} mapping, got {raw!r}")


def validate_entry(entry: CatalogEntry) -> CatalogEntry:
    name, url = entry.name, entry.url

    if not NAME_RE.match(name):
        raise InvalidCatalogEntry(name, "name", "must match [a-z0-9.-]+")
    if not any(c.isdigit() for c in name):
        raise InvalidCatalogEntry(name, "name", "must contain a version number")

    if not url.startswith(("http://", "https://")):
        raise InvalidCatalogEntry(name, "url", "must start with http:// or https://")
    if any(c.isspace() for c in url):
        raise InvalidCatalogEntry(name, "url", "must not contain whitespace")
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as e:
        raise InvalidCatalogEntry(name, "url", f"cannot be parsed: {e}") from e
    if not parsed.host:
        raise InvalidCatalogEntry(name, "url", "has no host")
    if not url.lower().endswith(tuple(IMAGE_FILESYSTEMS)):
        exts = ", ".join(IMAGE_FILESYSTEMS)
        raise InvalidCatalogEntry(name, "url", f"must end with one of: {exts}")

    return entry


class Catalog:
    """Immutable name -> url lookup."""

    def __init__(self, entries: Mapping[str, str]) -> None:
        self._entries: Mapping[str, str] = MappingProxyType(dict(entries))

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "Catalog":
        """Build from the YAML shape ``{name: {url: ...}}`` (or ``{name: url}``)."""
        entries: Dict[str, str] = {}
        for name, value in raw.items():
            if isinstance(value, dict):
                url = value.get("url")
            else:
                url = value
            if not isinstance(url, str):
                raise ConfigError(f"catalog entry {name!r} must have a string url")
            entries[str(name)] = url
        return cls(entries)

    @property
    def entries(self) -> Mapping[str, str]:
        return self._entries

    def names(self) -> List[str]:
        return list(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def resolve_one(self, ref: DesiredImageRef) -> CatalogEntry:
        if ref.url is not None:
            return validate_entry(CatalogEntry(name=ref.name, url=ref.url))
        url = self._entries.get(ref.name)
        if url is None:
            raise UnknownImage(ref.name)
        return validate_entry(CatalogEntry(name=ref.name, url=url))

    def resolve(self, desired: Iterable[DesiredImageRef]) -> List[CatalogEntry]:
        return [self.resolve_one(ref) for ref in desired]


def select_all(catalog: Catalog) -> Sequence[DesiredImageRef]:
    return [DesiredImageRef(name=n) for n in catalog.names()]
