"""
Processed asset key formats.

Two layouts coexist while the migration rolls out:

    legacy       processed/<base>---processed@<label>_<n>.<ext>
    partitioned  processed/<label>/<base>---processed@<label>_<n>.<ext>

parse_processed_key() tries the partitioned pattern first, then the legacy
one, and returns a LegacyKey or PartitionedKey so callers can dispatch on
the type instead of re-checking the string.
"""

import re
from dataclasses import dataclass
from typing import Union

from gallery.exceptions import ParseError

PROCESSED_PREFIX = "processed/"
PROCESSED_MARKER = "---processed@"

LEGACY_KEY_PATTERN = re.compile(
    r"^processed/(?P<base>[^/]+?)---processed@(?P<label>[^/]+?)_(?P<n>\d+)\.(?P<ext>[A-Za-z0-9]+)$"
)
PARTITIONED_KEY_PATTERN = re.compile(
    r"^processed/(?P<partition>[^/]+)/(?P<base>[^/]+?)---processed@(?P<label>[^/]+?)"
    r"_(?P<n>\d+)\.(?P<ext>[A-Za-z0-9]+)$"
)


def processed_filename(base: str, label: str, n: int, ext: str) -> str:
    return f"{base}{PROCESSED_MARKER}{label}_{n}.{ext}"


@dataclass(frozen=True)
class PartitionedKey:
    """Key under the label partition: processed/<label>/<filename>."""

    partition: str
    base: str
    label: str
    n: int
    ext: str

    @property
    def filename(self) -> str:
        return processed_filename(self.base, self.label, self.n, self.ext)

    @property
    def key(self) -> str:
        return f"{PROCESSED_PREFIX}{self.partition}/{self.filename}"


@dataclass(frozen=True)
class LegacyKey:
    """Key at the root of processed/, pending migration."""

    base: str
    label: str
    n: int
    ext: str

    @property
    def filename(self) -> str:
        return processed_filename(self.base, self.label, self.n, self.ext)

    @property
    def key(self) -> str:
        return f"{PROCESSED_PREFIX}{self.filename}"

    def partitioned(self) -> PartitionedKey:
        """The target key this legacy key migrates to."""
        return PartitionedKey(
            partition=self.label,
            base=self.base,
            label=self.label,
            n=self.n,
            ext=self.ext,
        )


ProcessedKey = Union[LegacyKey, PartitionedKey]


def parse_processed_key(key: str) -> ProcessedKey:
    """
    Parse a processed object key into its tagged variant.

    Raises:
        ParseError: the key matches neither layout
    """
    match = PARTITIONED_KEY_PATTERN.match(key)
    if match:
        return PartitionedKey(
            partition=match.group("partition"),
            base=match.group("base"),
            label=match.group("label"),
            n=int(match.group("n")),
            ext=match.group("ext"),
        )

    match = LEGACY_KEY_PATTERN.match(key)
    if match:
        return LegacyKey(
            base=match.group("base"),
            label=match.group("label"),
            n=int(match.group("n")),
            ext=match.group("ext"),
        )

    raise ParseError(f"Unrecognised processed key: {key}")


def is_root_level(key: str) -> bool:
    """True for keys directly under processed/ (no further "/")."""
    return key.startswith(PROCESSED_PREFIX) and "/" not in key[len(PROCESSED_PREFIX):]
