"""JSON load/save helpers for the settings file."""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any, TypeVar, cast

from yarl import URL

from fetchcache.config import JsonType


_JSON_T = TypeVar("_JSON_T", bound=Mapping[Any, Any])
_MISSING = object()


# Maps stored type names back to their constructors
SERIALIZE_ENV: dict[str, Callable[[Any], object]] = {
    "set": set,
    "URL": URL,
}


def _serialize(obj: Any) -> Any:
    """
    Encode the non-JSON types settings can hold, tagged with their type name.
    """
    d: str | list[Any]
    if isinstance(obj, URL):
        d = str(obj)
    elif isinstance(obj, set):
        d = sorted(obj)
    else:
        raise TypeError(obj)
    return {
        "__type": type(obj).__name__,
        "data": d,
    }


def _deserialize(obj: JsonType) -> Any:
    # unknown tags become _MISSING and are dropped afterwards
    if "__type" in obj:
        obj_type = obj["__type"]
        if obj_type in SERIALIZE_ENV:
            return SERIALIZE_ENV[obj_type](obj["data"])
        return _MISSING
    return obj


def _remove_missing(obj: JsonType) -> JsonType:
    for key, value in list(obj.items()):
        if value is _MISSING:
            del obj[key]
        elif isinstance(value, dict):
            _remove_missing(value)
    return obj


def _same_kind(value: Any, template: Any) -> bool:
    if type(value) is type(template):
        return True
    # JSON doesn't keep 15.0 and 15 apart
    return isinstance(template, float) and type(value) is int


def merge_json(obj: JsonType, template: Mapping[Any, Any]) -> None:
    """
    Make `obj` match the shape of `template`, in place.

    Unknown keys are dropped, values of the wrong type are replaced with
    the template's, nested dicts are merged and missing keys are filled in.
    """
    for k, v in list(obj.items()):
        if k not in template:
            del obj[k]
        elif not _same_kind(v, template[k]):
            obj[k] = template[k]
        elif isinstance(v, dict):
            merge_json(v, template[k])
        elif isinstance(template[k], float):
            obj[k] = float(v)
    for k in template:
        if k not in obj:
            obj[k] = template[k]


def json_load(path: Path, defaults: _JSON_T, *, merge: bool = True) -> _JSON_T:
    """
    Load JSON from a file with defaults and optional merging.

    Args:
        path: Path to JSON file
        defaults: Values used when the file doesn't exist, and the merge template otherwise
        merge: If True, merge loaded data with defaults template

    Returns:
        Loaded and optionally merged JSON data
    """
    defaults_dict: JsonType = dict(defaults)
    if path.exists():
        with open(path, encoding="utf8") as file:
            combined: JsonType = _remove_missing(json.load(file, object_hook=_deserialize))
        if merge:
            merge_json(combined, defaults_dict)
    else:
        combined = defaults_dict
    return cast(_JSON_T, combined)


def json_save(path: Path, contents: Mapping[Any, Any], *, sort: bool = False) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf8") as file:
        json.dump(contents, file, default=_serialize, sort_keys=sort, indent=4)
