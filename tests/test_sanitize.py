from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel

from workspace_sync.sanitize import MISSING, sanitize


def test_missing_object_field_is_dropped():
    assert sanitize({"a": MISSING}) == {}
    assert sanitize({"a": MISSING, "b": 1}) == {"b": 1}


def test_missing_list_item_becomes_empty_marker():
    result = sanitize([1, MISSING, 3])
    assert result == [1, None, 3]
    assert len(result) == 3


def test_nested_structures():
    value = {
        "profile": {"name": "Ada", "bio": MISSING},
        "skills": [{"name": "py", "level": MISSING}, MISSING],
        "tags": ("a", MISSING),
    }
    assert sanitize(value) == {
        "profile": {"name": "Ada"},
        "skills": [{"name": "py"}, None],
        "tags": ["a", None],
    }


def test_none_is_kept():
    assert sanitize({"a": None}) == {"a": None}
    assert sanitize(None) is None


def test_top_level_missing_stays_missing():
    assert sanitize(MISSING) is MISSING


def test_models_and_datetimes_become_json_values():
    class Item(BaseModel):
        name: str
        note: Any = MISSING

    stamp = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    assert sanitize({"item": Item(name="x"), "at": stamp}) == {
        "item": {"name": "x"},
        "at": "2024-01-02T03:04:05+00:00",
    }
