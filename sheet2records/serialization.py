import datetime
import decimal
import enum
import typing
from dataclasses import fields, is_dataclass

from sheet2records.readers.cell_value import CellValue

# Type marker key added to serialized records
_TYPE_KEY = "_type"


def _serialize_for_json(value: typing.Any) -> typing.Any:
    if isinstance(value, CellValue):
        return serialize_cell(value)
    if isinstance(value, (datetime.date, datetime.time)):
        # covers datetime.datetime as well
        return value.isoformat()
    if isinstance(value, decimal.Decimal):
        return str(value)
    if isinstance(value, enum.Enum):
        return value.value
    if is_dataclass(value) and not isinstance(value, type):
        result = {
            _TYPE_KEY: type(value).__name__,
        }
        for item in fields(value):
            result[item.name] = _serialize_for_json(getattr(value, item.name))
        return result
    if isinstance(value, dict):
        return {str(key): _serialize_for_json(val) for key, val in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_serialize_for_json(item) for item in value]
    return value


def serialize_cell(cell_value: CellValue) -> dict:
    """JSON-ready form of a cell value: its type tag and its original value."""
    if cell_value.is_null:
        return {"type": None, "value": None}
    return {
        "type": cell_value.original_type.value,
        "value": _serialize_for_json(cell_value.original_value),
    }


def serialize_record(record: typing.Any) -> dict:
    """
    JSON-ready form of an extracted record.

    Dates and times become ISO 8601 strings, decimals become strings so no
    precision is lost. Dataclasses carry their class name under ``_type``.
    """
    serialized = _serialize_for_json(record)
    if isinstance(serialized, dict):
        return serialized
    return {"value": serialized}
