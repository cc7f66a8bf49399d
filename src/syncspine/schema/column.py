"""Column definitions and value coercion.

A ``Column`` maps one field of a resolved item onto one slot of a row.  The
mapping is explicit: a column either names a ``resolver`` callable, a dotted
``path`` into the raw item, or falls back to its own name.  Every value that
reaches a resource goes through ``ColumnType.coerce`` so the storage layer
only ever sees values of the declared type.

Tags:
    schema, column, types, coercion, syncspine

Doc-Types:
    api-reference
"""

from __future__ import annotations

import dataclasses
import ipaddress
import json
import re
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from syncspine.core.errors import ResourceValueError
from syncspine.core.timestamps import ensure_utc

if TYPE_CHECKING:
    from syncspine.schema.resource import Resource

# (ctx, client, resource, column) -> value | awaitable value
ColumnResolver = Callable[[Any, Any, "Resource", "Column"], Any]

_INT_RANGES = {
    "smallint": (-(2**15), 2**15 - 1),
    "int": (-(2**31), 2**31 - 1),
    "bigint": (-(2**63), 2**63 - 1),
}
_MAC_RE = re.compile(r"^([0-9A-Fa-f]{2}[:-]){5}[0-9A-Fa-f]{2}$")


class ColumnType(str, Enum):
    """Portable column types understood by every dialect."""

    BOOL = "bool"
    SMALLINT = "smallint"
    INT = "int"
    BIGINT = "bigint"
    FLOAT = "float"
    UUID = "uuid"
    STRING = "string"
    BYTE_ARRAY = "byte_array"
    STRING_ARRAY = "string_array"
    INT_ARRAY = "int_array"
    TIMESTAMP = "timestamp"
    JSON = "json"
    INET = "inet"
    CIDR = "cidr"
    MAC_ADDR = "mac_addr"

    def coerce(self, value: Any) -> Any:
        """Convert ``value`` into this type's canonical Python form.

        ``None`` always passes through.  Raises ``ResourceValueError`` when
        the value cannot represent this type.
        """
        if value is None:
            return None
        try:
            return _COERCERS[self](self, value)
        except ResourceValueError:
            raise
        except (TypeError, ValueError, OverflowError) as exc:
            raise ResourceValueError(
                f"cannot convert {type(value).__name__} to {self.value}",
                value=value,
                cause=exc,
            ) from exc


def _reject(column_type: ColumnType, value: Any) -> ResourceValueError:
    return ResourceValueError(
        f"cannot convert {type(value).__name__} to {column_type.value}",
        value=value,
    )


def _to_bool(column_type: ColumnType, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    raise _reject(column_type, value)


def _to_int(column_type: ColumnType, value: Any) -> int:
    if isinstance(value, bool):
        raise _reject(column_type, value)
    if isinstance(value, float):
        if not value.is_integer():
            raise _reject(column_type, value)
        value = int(value)
    elif isinstance(value, str):
        value = int(value.strip())
    elif isinstance(value, Enum):
        value = int(value.value)
    elif not isinstance(value, int):
        raise _reject(column_type, value)
    low, high = _INT_RANGES[column_type.value]
    if not low <= value <= high:
        raise ResourceValueError(f"{value} out of range for {column_type.value}", value=value)
    return value


def _to_float(column_type: ColumnType, value: Any) -> float:
    if isinstance(value, bool):
        raise _reject(column_type, value)
    if isinstance(value, (int, float, str)):
        return float(value)
    raise _reject(column_type, value)


def _to_uuid(column_type: ColumnType, value: Any) -> str:
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (str, bytes)):
        return str(uuid.UUID(value if isinstance(value, str) else value.decode()))
    raise _reject(column_type, value)


def _to_str(column_type: ColumnType, value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, Enum) and isinstance(value.value, str):
        return value.value
    raise _reject(column_type, value)


def _to_bytes(column_type: ColumnType, value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        return value.encode("utf-8")
    raise _reject(column_type, value)


def _to_str_list(column_type: ColumnType, value: Any) -> list[str]:
    if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple, set, frozenset)):
        raise _reject(column_type, value)
    return [_to_str(ColumnType.STRING, v) for v in value]


def _to_int_list(column_type: ColumnType, value: Any) -> list[int]:
    if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple, set, frozenset)):
        raise _reject(column_type, value)
    return [_to_int(ColumnType.BIGINT, v) for v in value]


def _to_timestamp(column_type: ColumnType, value: Any) -> datetime:
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    if isinstance(value, str):
        return ensure_utc(datetime.fromisoformat(value))
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, UTC)
    raise _reject(column_type, value)


def _to_json(column_type: ColumnType, value: Any) -> Any:
    if isinstance(value, (str, bytes, bytearray)):
        return json.loads(value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        value = dataclasses.asdict(value)
    elif hasattr(value, "model_dump"):
        value = value.model_dump()
    # normalise nested datetimes, UUIDs and the like into plain JSON values
    return json.loads(json.dumps(value, default=str))


def _to_inet(column_type: ColumnType, value: Any) -> str:
    if isinstance(value, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        return str(value)
    if isinstance(value, (ipaddress.IPv4Interface, ipaddress.IPv6Interface)):
        return str(value)
    if isinstance(value, str):
        if "/" in value:
            return str(ipaddress.ip_interface(value))
        return str(ipaddress.ip_address(value))
    raise _reject(column_type, value)


def _to_cidr(column_type: ColumnType, value: Any) -> str:
    if isinstance(value, (ipaddress.IPv4Network, ipaddress.IPv6Network)):
        return str(value)
    if isinstance(value, str):
        return str(ipaddress.ip_network(value, strict=False))
    raise _reject(column_type, value)


def _to_mac(column_type: ColumnType, value: Any) -> str:
    if isinstance(value, str) and _MAC_RE.match(value):
        return value.lower().replace("-", ":")
    raise _reject(column_type, value)


_COERCERS: dict[ColumnType, Callable[[ColumnType, Any], Any]] = {
    ColumnType.BOOL: _to_bool,
    ColumnType.SMALLINT: _to_int,
    ColumnType.INT: _to_int,
    ColumnType.BIGINT: _to_int,
    ColumnType.FLOAT: _to_float,
    ColumnType.UUID: _to_uuid,
    ColumnType.STRING: _to_str,
    ColumnType.BYTE_ARRAY: _to_bytes,
    ColumnType.STRING_ARRAY: _to_str_list,
    ColumnType.INT_ARRAY: _to_int_list,
    ColumnType.TIMESTAMP: _to_timestamp,
    ColumnType.JSON: _to_json,
    ColumnType.INET: _to_inet,
    ColumnType.CIDR: _to_cidr,
    ColumnType.MAC_ADDR: _to_mac,
}


@dataclass(frozen=True)
class Column:
    """One column of a table.

    Attributes:
        name: Column name in the backing table
        type: Portable column type
        description: Free text, rendered by ``syncspine tables``
        resolver: Callable computing the value; overrides ``path``
        path: Dotted path into the raw item (defaults to ``name``)
        not_null: Create the column ``NOT NULL``
        unique: Create a unique constraint on the column
        ignore_in_tests: Exempt from the no-empty-columns verification
    """

    name: str
    type: ColumnType
    description: str = ""
    resolver: ColumnResolver | None = None
    path: str | None = None
    not_null: bool = False
    unique: bool = False
    ignore_in_tests: bool = False

    @property
    def source_path(self) -> str:
        """Dotted path the default resolution reads from."""
        return self.path if self.path is not None else self.name

    def __repr__(self) -> str:
        return f"Column({self.name!r}, {self.type.value})"


__all__ = ["Column", "ColumnResolver", "ColumnType"]
