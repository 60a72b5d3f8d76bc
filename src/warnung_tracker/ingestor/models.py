"""Data models for the warning feed.

The feed is a JSON array of CAP-style warning messages. Only the fields
below are modelled; everything else (``polygon``, raw geocode ``value``,
``references`` and so on) is dropped on decode.
"""

import json
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

T = TypeVar("T")


class DecodeError(Exception):
    """Raised when the feed body does not match the warning schema."""


def _get_str(data: dict[str, Any], key: str) -> str:
    """Return a string field, treating missing and null as empty."""
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise DecodeError(f"field {key!r} must be a string, got {type(value).__name__}")
    return value


def _get_list(
    data: dict[str, Any],
    key: str,
    item: Callable[[Any], T],
) -> tuple[T, ...]:
    """Return a list field converted item by item, missing and null as empty."""
    value = data.get(key)
    if value is None:
        return ()
    if not isinstance(value, list):
        raise DecodeError(f"field {key!r} must be a list, got {type(value).__name__}")
    return tuple(item(v) for v in value)


def _as_object(value: Any) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise DecodeError(f"expected a JSON object, got {type(value).__name__}")
    return value


def _as_str(value: Any) -> str:
    if not isinstance(value, str):
        raise DecodeError(f"expected a string, got {type(value).__name__}")
    return value


@dataclass(frozen=True)
class Parameter:
    """A name/value pair attached to an info block."""

    value_name: str = ""
    value: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "Parameter":
        """Create a Parameter from a feed object."""
        data = _as_object(data)
        return cls(
            value_name=_get_str(data, "valueName"),
            value=_get_str(data, "value"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"valueName": self.value_name, "value": self.value}


@dataclass(frozen=True)
class GeoCode:
    """Classification name of a geocode; the code value itself is not kept."""

    value_name: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "GeoCode":
        """Create a GeoCode from a feed object."""
        data = _as_object(data)
        return cls(value_name=_get_str(data, "valueName"))

    def to_dict(self) -> dict[str, Any]:
        return {"valueName": self.value_name}


@dataclass(frozen=True)
class Area:
    """Named area affected by a warning (polygons are dropped)."""

    area_desc: str = ""
    geocode: tuple[GeoCode, ...] = ()

    @classmethod
    def from_dict(cls, data: Any) -> "Area":
        """Create an Area from a feed object."""
        data = _as_object(data)
        return cls(
            area_desc=_get_str(data, "areaDesc"),
            geocode=_get_list(data, "geocode", GeoCode.from_dict),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "areaDesc": self.area_desc,
            "geocode": [g.to_dict() for g in self.geocode],
        }


@dataclass(frozen=True)
class Info:
    """One localized detail block of a warning."""

    severity: str = ""
    urgency: str = ""
    description: str = ""
    headline: str = ""
    event: str = ""
    certainty: str = ""
    category: tuple[str, ...] = ()
    parameter: tuple[Parameter, ...] = ()
    area: tuple[Area, ...] = ()

    @classmethod
    def from_dict(cls, data: Any) -> "Info":
        """Create an Info block from a feed object."""
        data = _as_object(data)
        return cls(
            severity=_get_str(data, "severity"),
            urgency=_get_str(data, "urgency"),
            description=_get_str(data, "description"),
            headline=_get_str(data, "headline"),
            event=_get_str(data, "event"),
            certainty=_get_str(data, "certainty"),
            category=_get_list(data, "category", _as_str),
            parameter=_get_list(data, "parameter", Parameter.from_dict),
            area=_get_list(data, "area", Area.from_dict),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "severity": self.severity,
            "urgency": self.urgency,
            "description": self.description,
            "headline": self.headline,
            "event": self.event,
            "certainty": self.certainty,
            "category": list(self.category),
            "parameter": [p.to_dict() for p in self.parameter],
            "area": [a.to_dict() for a in self.area],
        }


@dataclass(frozen=True)
class WarningMessage:
    """A single warning message from the feed.

    ``sent`` is kept exactly as delivered by the feed; it is not parsed
    into a datetime.
    """

    identifier: str
    msg_type: str = ""
    sender: str = ""
    scope: str = ""
    sent: str = ""
    status: str = ""
    code: tuple[str, ...] = ()
    info: tuple[Info, ...] = ()

    @classmethod
    def from_dict(cls, data: Any) -> "WarningMessage":
        """Create a WarningMessage from a feed or store object.

        Args:
            data: Decoded JSON object.

        Returns:
            WarningMessage instance.

        Raises:
            DecodeError: If a field has the wrong JSON type.
        """
        data = _as_object(data)
        return cls(
            identifier=_get_str(data, "identifier"),
            msg_type=_get_str(data, "msgType"),
            sender=_get_str(data, "sender"),
            scope=_get_str(data, "scope"),
            sent=_get_str(data, "sent"),
            status=_get_str(data, "status"),
            code=_get_list(data, "code", _as_str),
            info=_get_list(data, "info", Info.from_dict),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON object form used for storage and display."""
        return {
            "identifier": self.identifier,
            "msgType": self.msg_type,
            "sender": self.sender,
            "scope": self.scope,
            "sent": self.sent,
            "status": self.status,
            "code": list(self.code),
            "info": [i.to_dict() for i in self.info],
        }


def decode_warnings(raw: bytes | str) -> tuple[WarningMessage, ...]:
    """Decode a feed body into warnings, preserving feed order.

    Args:
        raw: Response body, expected to be a JSON array of objects.

    Returns:
        Tuple of WarningMessage in the order they appear in the feed.

    Raises:
        DecodeError: If the body is not valid JSON, is not an array of
            objects, or a field has the wrong type.
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DecodeError(f"invalid JSON: {e}") from e

    if not isinstance(data, list):
        raise DecodeError(f"expected a JSON array, got {type(data).__name__}")

    return tuple(WarningMessage.from_dict(item) for item in data)
