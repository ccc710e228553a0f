"""File-backed gadget URL blacklist.

One entry per line. Lines starting with ``REGEXP`` hold a regular expression
matched against the start of the URL; other lines are compared case-insensitively
with the whole URL. Blank lines and ``#`` comments are ignored.
"""

from __future__ import annotations

import re
from pathlib import Path

from gadgetry.core.errors import ConfigError

_REGEXP_PREFIX = "REGEXP"


class FileBlacklist:
    def __init__(self, urls: frozenset[str] = frozenset(), patterns: tuple[re.Pattern[str], ...] = ()) -> None:
        self.urls = urls
        self.patterns = patterns

    @classmethod
    def from_file(cls, path: Path) -> FileBlacklist:
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except OSError as exc:
            raise ConfigError(f"Could not read blacklist file {path}: {exc}") from exc

        urls: set[str] = set()
        patterns: list[re.Pattern[str]] = []
        for lineno, raw in enumerate(lines, start=1):
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            if line.startswith(_REGEXP_PREFIX):
                expression = line[len(_REGEXP_PREFIX):].strip()
                try:
                    patterns.append(re.compile(expression, re.IGNORECASE))
                except re.error as exc:
                    raise ConfigError(f"Invalid blacklist pattern at {path}:{lineno}: {exc}") from exc
            else:
                urls.add(line.lower())
        return cls(frozenset(urls), tuple(patterns))

    def is_blacklisted(self, url: str) -> bool:
        if url.strip().lower() in self.urls:
            return True
        return any(pattern.match(url) for pattern in self.patterns)
