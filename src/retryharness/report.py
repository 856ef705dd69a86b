"""Failure report formatting."""

from __future__ import annotations

from collections.abc import Iterable


def dedup(lines: Iterable[str]) -> str:
    """Join distinct lines in first-seen order, each terminated by a newline."""
    seen: set[str] = set()
    unique: list[str] = []
    for line in lines:
        if line in seen:
            continue
        seen.add(line)
        unique.append(line)
    return "".join(f"{line}\n" for line in unique)
