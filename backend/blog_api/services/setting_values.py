"""
Typed values for the ``settings`` table.

A setting is stored as a raw string plus a ``type`` discriminator. This
module is the only place that converts between the two representations:

- json:    raw JSON text            <-> any JSON value
- boolean: "true" / "false"         <-> bool
- number:  decimal text             <-> int or float
- string:  text                     <-> str
"""

import json
import math
from dataclasses import dataclass
from typing import Any, Optional
from blog_api.core.errors import MalformedInput

SETTING_TYPES = ("json", "boolean", "number", "string")

_TRUTHY = {"true", "1", "yes", "on"}


@dataclass(frozen=True)
class SettingValue:
    type: str
    raw: Optional[str]

    def decode(self) -> Any:
        """Return the Python value for this setting"""
        if self.raw is None:
            return None
        if self.type == "json":
            try:
                return json.loads(self.raw)
            except ValueError:
                # Hand-edited rows may hold invalid JSON; show them as-is
                return self.raw
        if self.type == "boolean":
            return self.raw == "true"
        if self.type == "number":
            return _parse_number(self.raw, fallback=self.raw)
        return self.raw

    @classmethod
    def encode(cls, type_: str, value: Any) -> "SettingValue":
        """Build the stored representation of ``value`` for a setting of ``type_``"""
        if type_ not in SETTING_TYPES:
            raise MalformedInput(f"Unknown setting type: {type_}")

        if value is None:
            return cls(type_, None)

        if type_ == "json":
            raw = value if isinstance(value, str) else json.dumps(value)
        elif type_ == "boolean":
            if isinstance(value, str):
                raw = "true" if value.strip().lower() in _TRUTHY else "false"
            else:
                raw = "true" if value else "false"
        elif type_ == "number":
            raw = _format_number(value)
        else:
            raw = str(value)
        return cls(type_, raw)


def _parse_number(raw: str, fallback: Any = None) -> Any:
    try:
        return int(raw)
    except ValueError:
        pass
    try:
        number = float(raw)
    except ValueError:
        return fallback
    return number if math.isfinite(number) else fallback


def _format_number(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        number = value
    else:
        number = _parse_number(str(value).strip())
        if number is None:
            raise MalformedInput(f"Not a number: {value!r}")
        if isinstance(number, int):
            return str(number)
    if not math.isfinite(number):
        raise MalformedInput(f"Not a finite number: {value!r}")
    return str(int(number)) if number.is_integer() else repr(number)


def decode_setting(setting) -> Any:
    """Decode the value of a ``Setting`` row"""
    return SettingValue(setting.type or "string", setting.value).decode()
