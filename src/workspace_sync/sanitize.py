"""
Strip values the document store rejects before a payload leaves the client.

Object fields holding ``MISSING`` are dropped. List items holding ``MISSING``
become ``None`` so that indices never shift.
"""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel


class _Missing:
    __slots__ = ()

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False

    # Singleton: copies (including model default copies) must stay identical.
    def __copy__(self) -> "_Missing":
        return self

    def __deepcopy__(self, memo: dict) -> "_Missing":
        return self

    def __reduce__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


def sanitize(value: Any) -> Any:
    if value is MISSING or value is None:
        return value

    if isinstance(value, BaseModel):
        value = value.model_dump(by_alias=True)

    if isinstance(value, dict):
        result: dict[str, Any] = {}
        for key, entry in value.items():
            cleaned = sanitize(entry)
            if cleaned is not MISSING:
                result[str(key)] = cleaned
        return result

    if isinstance(value, (list, tuple)):
        items = []
        for item in value:
            cleaned = sanitize(item)
            items.append(None if cleaned is MISSING else cleaned)
        return items

    if isinstance(value, (datetime, date)):
        return value.isoformat()

    return value
