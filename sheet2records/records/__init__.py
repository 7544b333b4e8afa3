from sheet2records.records.binding import (
    ContextKind,
    RecordBinding,
    RecordRange,
    ValueKind,
    compile_record,
    record_column,
    record_context,
    workbook_record,
)
from sheet2records.records.extractor import WorkbookRecordExtractor
from sheet2records.records.object_factory import FactoryStrategy, ObjectFactory

__all__ = [
    "ContextKind",
    "FactoryStrategy",
    "ObjectFactory",
    "RecordBinding",
    "RecordRange",
    "ValueKind",
    "WorkbookRecordExtractor",
    "compile_record",
    "record_column",
    "record_context",
    "workbook_record",
]
