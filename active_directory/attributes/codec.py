"""
Conversions between raw directory attribute values and Python types.

Raw values arrive as ``bytes`` (or ``str`` when a caller builds entries by
hand). Every accessor here answers ``None`` or an empty list for a missing or
undecodable attribute instead of raising.

Interval attributes (``pwdLastSet``, ``lockoutTime`` ...) hold a base-10 count
of 100-nanosecond ticks since 1601-01-01 00:00:00 UTC.
"""

import datetime
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from ldap3.core.exceptions import LDAPInvalidDnError
from ldap3.utils.conv import escape_bytes, escape_filter_chars
from ldap3.utils.dn import parse_dn

from identity.identity_attribute import IdentityAttribute

from .snapshot import AttributeSnapshot


INTERVAL_EPOCH = datetime.datetime(1601, 1, 1, tzinfo=datetime.timezone.utc)
TICKS_PER_MICROSECOND = 10
MAX_INTERVAL_TICKS = 2**64 - 1


class AttributeType(Enum):
    STRING = "string"
    STRINGS = "strings"
    BYTES = "bytes"
    BYTES_LIST = "bytes_list"
    INTERVAL = "interval"
    INTEGER = "integer"
    GENERALIZED_TIME = "generalized_time"


# Attributes whose type is known up front. Names missing from the registry
# go through the fallback heuristic in ``infer_value``.
ATTRIBUTE_TYPES: Dict[str, AttributeType] = {
    "objectGUID": AttributeType.BYTES,
    "objectSid": AttributeType.BYTES,
    "objectClass": AttributeType.STRINGS,
    "member": AttributeType.STRINGS,
    "memberOf": AttributeType.STRINGS,
    "proxyAddresses": AttributeType.STRINGS,
    "accountExpires": AttributeType.INTERVAL,
    "badPasswordTime": AttributeType.INTERVAL,
    "lastLogon": AttributeType.INTERVAL,
    "lastLogonTimestamp": AttributeType.INTERVAL,
    "lockoutTime": AttributeType.INTERVAL,
    "pwdLastSet": AttributeType.INTERVAL,
    "badPwdCount": AttributeType.INTEGER,
    "groupType": AttributeType.INTEGER,
    "userAccountControl": AttributeType.INTEGER,
    "msDS-User-Account-Control-Computed": AttributeType.INTEGER,
    "createTimeStamp": AttributeType.GENERALIZED_TIME,
    "modifyTimeStamp": AttributeType.GENERALIZED_TIME,
    "whenChanged": AttributeType.GENERALIZED_TIME,
    "whenCreated": AttributeType.GENERALIZED_TIME,
}
_ATTRIBUTE_TYPES_LOWER = {name.lower(): kind for name, kind in ATTRIBUTE_TYPES.items()}


def _to_text(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value
    if isinstance(value, (bytes, bytearray)):
        try:
            return bytes(value).decode("utf-8")
        except UnicodeDecodeError:
            return None
    if value is None:
        return None
    return str(value)


def _to_bytes(value: Any) -> Optional[bytes]:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        return value.encode("utf-8")
    return None


# ----- Typed accessors -----


def get_string(name: str, snapshot: AttributeSnapshot) -> Optional[str]:
    """First value of ``name`` as text, or None."""
    values = snapshot.values(name)
    if not values:
        return None
    return _to_text(values[0])


def get_strings(name: str, snapshot: AttributeSnapshot) -> List[str]:
    """All values of ``name`` as text. Empty when any value is not valid text."""
    return strings_from_values(snapshot.values(name))


def strings_from_values(values: List[Any]) -> List[str]:
    texts = []
    for value in values or []:
        text = _to_text(value)
        if text is None:
            return []
        texts.append(text)
    return texts


def get_bytes(name: str, snapshot: AttributeSnapshot) -> Optional[bytes]:
    values = snapshot.values(name)
    if not values:
        return None
    return _to_bytes(values[0])


def get_bytes_list(name: str, snapshot: AttributeSnapshot) -> List[bytes]:
    return [b for b in (_to_bytes(value) for value in snapshot.values(name)) if b is not None]


def get_integer(name: str, snapshot: AttributeSnapshot) -> Optional[int]:
    text = get_string(name, snapshot)
    if text is None:
        return None
    try:
        return int(text.strip())
    except ValueError:
        return None


def get_interval(name: str, snapshot: AttributeSnapshot) -> Optional[datetime.datetime]:
    """First value of ``name`` decoded as an interval timestamp, or None."""
    return interval_to_datetime(get_string(name, snapshot))


def get_generalized_time(name: str, snapshot: AttributeSnapshot) -> Optional[datetime.datetime]:
    return decode_generalized_time(get_string(name, snapshot))


# ----- Interval and time conversions -----


def interval_to_datetime(ticks: Union[str, int, None]) -> Optional[datetime.datetime]:
    """
    Convert an interval tick count to an aware UTC datetime.

    Returns None for missing, non-numeric, negative or unrepresentable values.
    """
    if ticks is None:
        return None
    try:
        count = int(ticks.strip()) if isinstance(ticks, str) else int(ticks)
    except (TypeError, ValueError):
        return None
    if count < 0 or count > MAX_INTERVAL_TICKS:
        return None
    try:
        return INTERVAL_EPOCH + datetime.timedelta(microseconds=count // TICKS_PER_MICROSECOND)
    except OverflowError:
        return None


def datetime_to_ticks(value: datetime.datetime) -> Optional[int]:
    """Convert a datetime to interval ticks. Naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    delta = value - INTERVAL_EPOCH
    if delta < datetime.timedelta(0):
        return None
    ticks = (delta // datetime.timedelta(microseconds=1)) * TICKS_PER_MICROSECOND
    if ticks > MAX_INTERVAL_TICKS:
        return None
    return ticks


def to_interval(value: Union[datetime.datetime, int, None]) -> Optional[str]:
    """
    Encode a datetime or an unsigned tick count as the decimal interval string.

    Returns None when the value cannot be represented.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime.datetime):
        ticks = datetime_to_ticks(value)
        return str(ticks) if ticks is not None else None
    if isinstance(value, int):
        if 0 <= value <= MAX_INTERVAL_TICKS:
            return str(value)
        return None
    return None


def decode_generalized_time(value: Optional[str]) -> Optional[datetime.datetime]:
    """
    Parse an LDAP generalized time such as ``20240131235959.0Z``.

    Returns an aware UTC datetime, or None when the value is malformed.
    """
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1]
    main = text.split(".", 1)[0]
    if len(main) < 14:
        return None
    try:
        parsed = datetime.datetime.strptime(main[:14], "%Y%m%d%H%M%S")
    except ValueError:
        return None
    return parsed.replace(tzinfo=datetime.timezone.utc)


# ----- Type registry and fallback heuristic -----


def decode(kind: AttributeType, name: str, snapshot: AttributeSnapshot) -> Any:
    """Decode ``name`` from the snapshot as the given attribute type."""
    if kind is AttributeType.STRING:
        return get_string(name, snapshot)
    if kind is AttributeType.STRINGS:
        return get_strings(name, snapshot)
    if kind is AttributeType.BYTES:
        return get_bytes(name, snapshot)
    if kind is AttributeType.BYTES_LIST:
        return get_bytes_list(name, snapshot)
    if kind is AttributeType.INTERVAL:
        return get_interval(name, snapshot)
    if kind is AttributeType.INTEGER:
        return get_integer(name, snapshot)
    if kind is AttributeType.GENERALIZED_TIME:
        return get_generalized_time(name, snapshot)
    raise ValueError(f"Unsupported attribute type: {kind}")


def lookup_type(
    name: str, registry: Optional[Dict[str, AttributeType]] = None
) -> Optional[AttributeType]:
    if registry is None:
        return _ATTRIBUTE_TYPES_LOWER.get(name.lower())
    for registered, kind in registry.items():
        if registered.lower() == name.lower():
            return kind
    return None


def infer_value(name: str, snapshot: AttributeSnapshot) -> Any:
    """
    Decode an attribute of unknown type.

    Tries single string, string list, single bytes, bytes list and interval in
    that order and returns the first non-empty result, or None. A numeric
    value that is valid text is therefore always returned as a string.
    """
    attempts = (get_string, get_strings, get_bytes, get_bytes_list, get_interval)
    for attempt in attempts:
        value = attempt(name, snapshot)
        if value is None or value == []:
            continue
        return value
    return None


def get_attributes(
    names: List[str],
    snapshot: AttributeSnapshot,
    registry: Optional[Dict[str, AttributeType]] = None,
) -> List[IdentityAttribute]:
    """
    Decode several attributes at once.

    Registered names are decoded as their registered type. Everything else
    goes through ``infer_value``. Names with no value are returned with a
    value of None.
    """
    attributes = []
    for name in names or []:
        kind = lookup_type(name, registry)
        if kind is not None:
            value = decode(kind, name, snapshot)
        else:
            value = infer_value(name, snapshot)
        attributes.append(IdentityAttribute(name, value))
    return attributes


# ----- GUIDs, filters and distinguished names -----


def parse_guid(value: Union[str, uuid.UUID, bytes]) -> uuid.UUID:
    """
    Parse a GUID given as a UUID, its string form or raw objectGUID bytes.

    Raises:
        ValueError: If the value is not a well formed GUID.
    """
    if isinstance(value, uuid.UUID):
        return value
    if isinstance(value, (bytes, bytearray)):
        if len(value) != 16:
            raise ValueError(f"objectGUID must be 16 bytes, got {len(value)}")
        return uuid.UUID(bytes_le=bytes(value))
    if isinstance(value, str):
        try:
            return uuid.UUID(value.strip())
        except ValueError as e:
            raise ValueError(f"Malformed GUID: '{value}'") from e
    raise TypeError(f"Cannot parse a GUID from {type(value).__name__}")


def guid_from_bytes(value: Optional[bytes]) -> Optional[uuid.UUID]:
    """Decode an objectGUID value, or None when it is missing or malformed."""
    if not value:
        return None
    try:
        return parse_guid(value)
    except ValueError:
        return None


def guid_filter(guid: Union[str, uuid.UUID, bytes]) -> str:
    """Build ``(objectGUID=\\xx\\xx...)`` for a GUID."""
    return f"(objectGUID={escape_bytes(parse_guid(guid).bytes_le)})"


def attribute_filter(name: str, value: str, wildcard_suffix: bool = False) -> str:
    """Build ``(name=value)`` with the value escaped for use in a filter."""
    escaped = escape_filter_chars(value)
    if wildcard_suffix:
        escaped += "*"
    return f"({name}={escaped})"


def normalize_dn(dn: Optional[str]) -> Optional[str]:
    """
    Canonical form of a distinguished name for comparisons.

    Attribute types and values are lower-cased and the spaces around
    separators are dropped. Component order is kept.
    """
    if dn is None:
        return None
    try:
        components = parse_dn(dn, escape=False, strip=True)
    except LDAPInvalidDnError:
        return dn.strip().lower()
    return "".join(
        f"{attr.strip().lower()}={value.strip().lower()}{separator}"
        for attr, value, separator in components
    )


def parent_dn(dn: Optional[str]) -> Optional[str]:
    """The distinguished name without its first relative name."""
    if not dn:
        return None
    try:
        components = parse_dn(dn, escape=False, strip=True)
    except LDAPInvalidDnError:
        return None
    # A multi-valued first RDN spans every component joined by "+".
    start = 1
    while start < len(components) and components[start - 1][2] == "+":
        start += 1
    if start >= len(components):
        return None
    return "".join(f"{attr}={value}{separator}" for attr, value, separator in components[start:])


def first_rdn_value(dn: Optional[str]) -> Optional[str]:
    if not dn:
        return None
    try:
        components = parse_dn(dn, escape=False, strip=True)
    except LDAPInvalidDnError:
        return None
    return components[0][1] if components else None
