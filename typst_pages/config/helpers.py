"""Utility helpers shared by the typst-pages configuration loader."""

from __future__ import annotations

import re
import typing as typ
from pathlib import Path

from .models import BuildConfigError, PageEntry

SEMVER_PATTERN = re.compile(
    r"^v?(?P<major>\d+)\.(?P<minor>\d+)\.(?P<patch>\d+)"
    r"(?:-[0-9A-Za-z.-]+)?(?:\+[0-9A-Za-z.-]+)?$"
)


def _optional_str(value: object | None) -> str | None:
    """Return a stripped string value or None when empty."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _optional_path(value: object | None, root: Path) -> Path | None:
    """Return ``value`` as a path relative to ``root``, or None when empty."""
    text = _optional_str(value)
    if text is None:
        return None
    return root / text


def artifact_prefix(sitename: str, version: str) -> str:
    """Return the output file stem for ``sitename`` at ``version``.

    Examples
    --------
    >>> artifact_prefix("My Project", "v1.2.3-rc1")
    'MyProject-1.2.3'
    >>> artifact_prefix("My Project", "nightly")
    'MyProject'
    """
    prefix = sitename
    match = SEMVER_PATTERN.match(version.strip())
    if match:
        prefix += f"-{int(match['major'])}.{int(match['minor'])}.{int(match['patch'])}"
    return prefix.replace(" ", "")


def flatten_pages(entries: typ.Iterable[object], depth: int = 1) -> list[PageEntry]:
    """Flatten the nested YAML page list depth-first.

    Accepted entry forms are ``"file.md"``, ``{"Title": "file.md"}``,
    ``{"Title": [...children]}`` and a bare nested list, whose entries sit one
    level deeper.

    Raises
    ------
    BuildConfigError
        If an entry has any other shape.
    """
    flattened: list[PageEntry] = []
    for entry in entries:
        match entry:
            case str():
                flattened.append(PageEntry(title="", path=entry, depth=depth))
            case list():
                flattened.extend(flatten_pages(entry, depth + 1))
            case dict() if len(entry) == 1:
                title, value = next(iter(entry.items()))
                match value:
                    case str():
                        flattened.append(PageEntry(title=str(title), path=value, depth=depth))
                    case list():
                        flattened.append(PageEntry(title=str(title), path="", depth=depth))
                        flattened.extend(flatten_pages(value, depth + 1))
                    case _:
                        msg = f"Page '{title}' must map to a file path or a list of pages."
                        raise BuildConfigError(msg)
            case _:
                msg = f"Unsupported page list entry: {entry!r}"
                raise BuildConfigError(msg)
    return flattened


__all__ = ["SEMVER_PATTERN", "_optional_path", "_optional_str", "artifact_prefix", "flatten_pages"]
