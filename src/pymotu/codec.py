"""Decode and encode the datastore's string micro-encoding.

Only string values are ever reinterpreted:

* keys containing ``name`` (any case) are never decoded, names may
  legitimately contain ``:``
* ``bool:<digit>`` becomes a :class:`BoolValue`
* ``enum:<selected>:<key>=<label>:...`` becomes an :class:`EnumValue`
* any other string containing ``:`` becomes a :class:`PairValue`
* everything else is returned unchanged

:func:`encode` is the inverse used for writes, except that enums encode
to their selected key only.
"""

from __future__ import annotations

import re
from typing import Any

from pymotu.exceptions import MotuDecodeError
from pymotu.models.value import BoolValue, EnumValue, FloatValue, IntValue, PairValue, StringValue, Value

NAME_ESCAPE_PATTERN = re.compile(r"name", re.IGNORECASE)
BOOL_PATTERN = re.compile(r"bool:([0-9])")

_DELIMITER = ":"
_ENUM_MARKER = "enum"


def from_json(raw: Any, key: str = "") -> Value:
    """Convert a generic JSON scalar into a :data:`Value`.

    ``bool`` is checked before ``int`` since it is a subclass of it.
    """
    if isinstance(raw, bool):
        return BoolValue(value=raw)
    if isinstance(raw, int):
        return IntValue(value=raw)
    if isinstance(raw, float):
        return FloatValue(value=raw)
    if isinstance(raw, str):
        return StringValue(value=raw)
    raise MotuDecodeError(f"unsupported JSON value for {key!r}: {type(raw).__name__}", key=key, raw=raw)


def parse_index(text: str) -> int | None:
    """Value of a plain ASCII digit string, ``None`` for anything else.

    Signs, whitespace, ``_`` separators and non-ASCII digits are all rejected.
    """
    if not (text.isascii() and text.isdigit()):
        return None
    return int(text)


def _decode_enum(segments: list[str], key: str, raw: str) -> EnumValue:
    if len(segments) < 2:
        raise MotuDecodeError(f"enum without selection for {key!r}", key=key, raw=raw)
    selected = parse_index(segments[1])
    if selected is None:
        raise MotuDecodeError(f"enum selection is not an integer for {key!r}: {segments[1]!r}", key=key, raw=raw)

    options: list[tuple[int, str]] = []
    for segment in segments[2:]:
        option_key, sep, label = segment.partition("=")
        if not sep:
            raise MotuDecodeError(f"enum option without '=' for {key!r}: {segment!r}", key=key, raw=raw)
        option = parse_index(option_key)
        if option is None:
            raise MotuDecodeError(f"enum option key is not an integer for {key!r}: {segment!r}", key=key, raw=raw)
        options.append((option, label))

    return EnumValue(selected=selected, options=tuple(options))


def decode(raw: Value, key: str) -> Value:
    """Decode a raw datastore value stored under *key*.

    Raises :class:`MotuDecodeError` for malformed ``enum:`` strings.
    """
    if not isinstance(raw, StringValue):
        return raw

    text = raw.value
    if not text:
        return raw

    if NAME_ESCAPE_PATTERN.search(key):
        return raw

    match = BOOL_PATTERN.fullmatch(text)
    if match is not None:
        return BoolValue(value=match.group(1) == "1")

    segments = text.split(_DELIMITER)
    if segments[0] == _ENUM_MARKER:
        return _decode_enum(segments, key, text)

    if len(segments) > 1:
        return PairValue(items=tuple(segments))

    return raw


def decode_json(raw: Any, key: str) -> Value:
    """Shortcut for ``decode(from_json(raw, key), key)``."""
    return decode(from_json(raw, key), key)


def encode(value: Value) -> str:
    """Encode a value into its datastore string form."""
    return value.encode()


def to_wire(value: Value) -> str | int | float:
    """Return the JSON form of *value* used in write payloads.

    Numbers (including an enum's selection) stay JSON numbers, everything
    else is sent as its encoded string.
    """
    if isinstance(value, (IntValue, FloatValue)):
        return value.value
    if isinstance(value, EnumValue):
        return value.selected
    return value.encode()


# ------------------------------------------------------------------
# Coercion helpers used by the bank/channel model
# ------------------------------------------------------------------


def as_text(value: Value) -> str | None:
    """String form of *value*; an empty string means "unset"."""
    text = value.encode()
    return text if text else None


def as_int(value: Value, key: str = "") -> int:
    if isinstance(value, BoolValue):
        return int(value.value)
    if isinstance(value, IntValue):
        return value.value
    if isinstance(value, FloatValue):
        try:
            return int(value.value)
        except (ValueError, OverflowError) as exc:
            raise MotuDecodeError(f"not a finite number for {key!r}: {value.value!r}", key=key, raw=value.value) from exc
    if isinstance(value, EnumValue):
        return value.selected
    if isinstance(value, StringValue):
        try:
            return int(float(value.value))
        except (ValueError, OverflowError) as exc:
            raise MotuDecodeError(f"not a number for {key!r}: {value.value!r}", key=key, raw=value.value) from exc
    raise MotuDecodeError(f"cannot read {value.kind} as integer for {key!r}", key=key, raw=value.encode())


def as_bool(value: Value, key: str = "") -> bool:
    if isinstance(value, BoolValue):
        return value.value
    if isinstance(value, (IntValue, FloatValue)):
        return value.value != 0
    raise MotuDecodeError(f"cannot read {value.kind} as boolean for {key!r}", key=key, raw=value.encode())


def as_range(value: Value, key: str = "") -> tuple[int, int]:
    """Read a ``low:high`` pair as an integer range."""
    if not isinstance(value, PairValue) or len(value.items) != 2:
        raise MotuDecodeError(f"expected a low:high pair for {key!r}", key=key, raw=value.encode())
    try:
        low, high = (int(float(item)) for item in value.items)
    except (ValueError, OverflowError) as exc:
        raise MotuDecodeError(f"range bounds are not numbers for {key!r}: {value.encode()!r}", key=key, raw=value.encode()) from exc
    return low, high
