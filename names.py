from __future__ import annotations

import re
from collections.abc import Iterable
from urllib.parse import quote

VARIABLE_NAME_TYPE = "VARIABLE"
PROCEDURE_NAME_TYPE = "PROCEDURE"

# Characters encodeURI leaves untouched besides letters and digits.
_URI_SAFE = ";,/?:@&=+$-_.!~*'()#"
_NON_WORD = re.compile(r"[^\w]", re.ASCII)


class Names:
    """Maps user-visible names to unique, legal Python identifiers.

    Lookups are case-insensitive within a name type, so ``Count`` and
    ``count`` become the same identifier. Reserved words and names already
    handed out get a numeric suffix starting at 2.
    """

    def __init__(self, reserved_words: Iterable[str] = ()) -> None:
        self.reserved_words = set(reserved_words)
        self._db: dict[str, str] = {}
        self._taken: set[str] = set()

    def reset(self) -> None:
        self._db.clear()
        self._taken.clear()

    def get_name(self, name: str, name_type: str) -> str:
        key = f"{name.lower()}_{name_type}"
        existing = self._db.get(key)
        if existing is not None:
            return existing
        safe = self.get_distinct_name(name, name_type)
        self._db[key] = safe
        return safe

    def get_distinct_name(self, name: str, name_type: str) -> str:
        base = self.safe_name(name)
        candidate = base
        suffix = 1
        while candidate in self._taken or candidate in self.reserved_words:
            suffix += 1
            candidate = f"{base}{suffix}"
        self._taken.add(candidate)
        return candidate

    @staticmethod
    def safe_name(name: str) -> str:
        if not name:
            return "unnamed"
        encoded = quote(name.replace(" ", "_"), safe=_URI_SAFE)
        safe = _NON_WORD.sub("_", encoded)
        if safe[0].isdigit():
            safe = "my_" + safe
        return safe
