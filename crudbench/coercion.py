"""Convert between user-entered text and typed column values.

``parse`` turns edit-field text into the value bound for a column and
``render`` goes the other way to pre-populate edit fields. For every type,
``parse(render(v)) == v`` (DECIMAL within representation precision).
"""

import datetime
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from .errors import InvalidFormat, RequiredFieldMissing, UnknownColumn
from .models import SqlType, TableMetadata

DATE_PATTERN = "YYYY-MM-DD"
DATETIME_PATTERN = "YYYY-MM-DD HH:MM:SS[+HH:MM]"
INTEGER_PATTERN = "an integer such as 42"
DECIMAL_PATTERN = "a number such as 12.50"

TRUE_TOKENS = frozenset({"true", "t", "yes", "y", "1", "on"})
FALSE_TOKENS = frozenset({"false", "f", "no", "n", "0", "off"})
BOOLEAN_PATTERN = "true/false, yes/no, y/n, t/f, on/off or 1/0"

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_DATETIME_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}[ T]\d{2}:\d{2}:\d{2}(\.\d{1,6})?(?P<offset>Z|[+-]\d{2}:\d{2})?$"
)
_INTEGER_RE = re.compile(r"^[+-]?\d+$")

_TEXT_TYPES = (SqlType.TEXT, SqlType.OTHER)


def _is_empty(raw_text, sql_type):
    if raw_text is None:
        return True
    if sql_type in _TEXT_TYPES:
        return raw_text == ""
    return raw_text.strip() == ""


def parse(raw_text: Optional[str], sql_type: SqlType, nullable: bool = True,
          field: Optional[str] = None) -> Any:
    """Parse edit-field text as a value of ``sql_type``.

    Raises:
        RequiredFieldMissing: the text is empty and the column is NOT NULL.
        InvalidFormat: the text is not a valid literal for the type.
    """
    if _is_empty(raw_text, sql_type):
        if nullable:
            return None
        raise RequiredFieldMissing(field)

    if sql_type in _TEXT_TYPES:
        return raw_text

    text = raw_text.strip()

    if sql_type is SqlType.INTEGER:
        if not _INTEGER_RE.match(text):
            raise InvalidFormat(field, INTEGER_PATTERN, raw_text)
        return int(text)

    if sql_type is SqlType.DECIMAL:
        try:
            value = Decimal(text)
        except InvalidOperation:
            raise InvalidFormat(field, DECIMAL_PATTERN, raw_text) from None
        if not value.is_finite():
            raise InvalidFormat(field, DECIMAL_PATTERN, raw_text)
        return value

    if sql_type is SqlType.DATE:
        if not _DATE_RE.match(text):
            raise InvalidFormat(field, DATE_PATTERN, raw_text)
        try:
            return datetime.date.fromisoformat(text)
        except ValueError:
            raise InvalidFormat(field, DATE_PATTERN, raw_text) from None

    if sql_type is SqlType.DATETIME:
        match = _DATETIME_RE.match(text)
        if not match:
            raise InvalidFormat(field, DATETIME_PATTERN, raw_text)
        fmt = "%Y-%m-%d %H:%M:%S" if " " in text else "%Y-%m-%dT%H:%M:%S"
        if "." in text:
            fmt += ".%f"
        if match.group("offset"):
            fmt += "%z"
        try:
            return datetime.datetime.strptime(text, fmt)
        except ValueError:
            raise InvalidFormat(field, DATETIME_PATTERN, raw_text) from None

    if sql_type is SqlType.BOOLEAN:
        token = text.lower()
        if token in TRUE_TOKENS:
            return True
        if token in FALSE_TOKENS:
            return False
        raise InvalidFormat(field, BOOLEAN_PATTERN, raw_text)

    raise ValueError(f"Unhandled SqlType: {sql_type}")


def render(value: Any, sql_type: SqlType) -> str:
    """Format a stored value as edit-field text."""
    if value is None:
        return ""

    if sql_type is SqlType.BOOLEAN:
        if isinstance(value, str):
            token = value.strip().lower()
            if token in TRUE_TOKENS:
                return "true"
            if token in FALSE_TOKENS:
                return "false"
            return value
        if isinstance(value, (bytes, bytearray)):
            # MySQL BIT(1) arrives as a single byte
            return "true" if any(value) else "false"
        return "true" if value else "false"

    if sql_type is SqlType.DATETIME and isinstance(value, datetime.datetime):
        return value.isoformat(" ")

    if sql_type is SqlType.DATE and isinstance(value, datetime.datetime):
        return value.date().isoformat()

    if isinstance(value, datetime.datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")

    if isinstance(value, datetime.date):
        return value.isoformat()

    if isinstance(value, Decimal):
        # Plain notation so parse() accepts it back without an exponent
        return format(value, "f")

    if isinstance(value, float):
        return repr(value)

    if isinstance(value, (bytes, bytearray)):
        return value.hex()

    return str(value)


def parse_record(meta: TableMetadata, field_values: Dict[str, Optional[str]]) -> Dict[str, Any]:
    """Coerce raw field text for a table, stopping at the first bad field.

    An empty value for an auto-generated column is dropped so the database
    can generate it.
    """
    values = {}
    for name, raw in field_values.items():
        col = meta.column(name)
        if col is None:
            raise UnknownColumn(meta.name, name)
        if col.is_auto_generated and _is_empty(raw, col.sql_type):
            continue
        if raw is not None and not isinstance(raw, str):
            # Already typed, e.g. a value taken from a loaded Record
            values[col.name] = raw
            continue
        values[col.name] = parse(raw, col.sql_type, col.nullable, field=col.name)
    return values
