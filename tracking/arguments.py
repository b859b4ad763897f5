"""
Sanitizing job arguments before they are stored as flow metadata.

Only a closed set of value kinds is kept as-is or shrunk:

    str              -> at most 100 characters, then "..."
    int/float/bool   -> unchanged
    None             -> unchanged
    list/tuple       -> first 3 items, each sanitized
    dict             -> first 5 keys (stringified), values sanitized
    ORM entity       -> {"class": <name>, "id": <primary key>}
    anything else    -> str(value) cut to 100 characters

Any value that cannot be rendered becomes UNSERIALIZABLE, and so does a
container that holds itself.
"""

from functools import singledispatch
from typing import Any, FrozenSet
import logging

from core.exceptions import UnserializableValueError
from models.base import Base

logger = logging.getLogger(__name__)

MAX_STRING_LENGTH = 100
MAX_LIST_ITEMS = 3
MAX_DICT_KEYS = 5
ELLIPSIS = "..."
UNSERIALIZABLE = "[unserializable]"


def truncate_argument(value: Any, _seen: FrozenSet[int] = frozenset()) -> Any:
    """Sanitized copy of value, never raises"""
    try:
        return _truncate(value, _seen)
    except UnserializableValueError as e:
        error = e
    except Exception as e:
        error = UnserializableValueError(
            f"Cannot render {type(value).__name__}",
            original_exception=e
        )
    logger.debug(f"Replacing argument with marker: {error.message}")
    return UNSERIALIZABLE


def _enter(value, seen: FrozenSet[int]) -> FrozenSet[int]:
    if id(value) in seen:
        raise UnserializableValueError(f"Cyclic {type(value).__name__}")
    return seen | {id(value)}


@singledispatch
def _truncate(value: Any, seen: FrozenSet[int]) -> Any:
    return str(value)[:MAX_STRING_LENGTH]


@_truncate.register(str)
def _(value: str, seen) -> str:
    if len(value) > MAX_STRING_LENGTH:
        return value[:MAX_STRING_LENGTH] + ELLIPSIS
    return value


@_truncate.register(int)
@_truncate.register(float)
@_truncate.register(bool)
@_truncate.register(type(None))
def _(value, seen):
    return value


@_truncate.register(list)
@_truncate.register(tuple)
def _(value, seen) -> list:
    seen = _enter(value, seen)
    return [truncate_argument(item, seen) for item in list(value)[:MAX_LIST_ITEMS]]


@_truncate.register(dict)
def _(value: dict, seen) -> dict:
    seen = _enter(value, seen)
    keys = list(value.keys())[:MAX_DICT_KEYS]
    return {str(key): truncate_argument(value[key], seen) for key in keys}


@_truncate.register(Base)
def _(value: Base, seen) -> dict:
    identity = value.__mapper__.primary_key_from_instance(value)
    return {
        "class": type(value).__name__,
        "id": identity[0] if len(identity) == 1 else list(identity)
    }
