"""
Loads the comma separated employee and department sources into typed records.

Empty fields load as null, the way Hive reads a delimited text table. A value
that cannot be converted to its column type makes the whole row malformed:
malformed rows are skipped and counted per kind unless skip_malformed is off.
"""
import collections
import csv
import io
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

from hr_warehouse.errors import MalformedRecordError, SourceUnavailableError
from hr_warehouse.model.schema import (
    REQUIRED_COLUMNS, Department, Department_Columns, Employee, Employee_Columns
)

logger = logging.getLogger(__name__)


def _parse_int(value):
    # int() accepts "1_000" and surrounding spaces, Hive does not
    if not value.lstrip("-").isdigit():
        raise ValueError(f"invalid integer {value!r}")
    return int(value)


def _parse_date(value):
    return datetime.strptime(value, "%Y-%m-%d").date()


CONVERTERS = {
    "INT": _parse_int,
    "BIGINT": _parse_int,
    "DOUBLE": float,
    "STRING": str,
    "DATE": _parse_date,
}


class IngestSummary:
    def __init__(self, source):
        self.source = source
        self.rows_read = 0
        self.rows_loaded = 0
        self.errors = collections.Counter()

    @property
    def rows_rejected(self):
        return sum(self.errors.values())

    def reject(self, error):
        self.errors[error.kind] += 1

    def as_dict(self):
        return {
            "source": self.source,
            "rows_read": self.rows_read,
            "rows_loaded": self.rows_loaded,
            "rows_rejected": self.rows_rejected,
            "errors": dict(self.errors),
        }

    def __repr__(self):
        return f"IngestSummary({self.as_dict()})"


def parse_row(fields, columns, line_number=None):
    """
    Converts the fields of one line into a dict keyed by column name.
    """
    if len(fields) != len(columns):
        raise MalformedRecordError(
            f"expected {len(columns)} fields, got {len(fields)}",
            kind="field_count", line_number=line_number)

    values = {}
    for raw, (name, ctype) in zip(fields, columns):
        if raw == "":
            if name in REQUIRED_COLUMNS:
                raise MalformedRecordError(f"{name} may not be empty", kind="null_key",
                                           line_number=line_number, column=name)
            values[name] = None
            continue
        try:
            values[name] = CONVERTERS[ctype](raw)
        except ValueError:
            raise MalformedRecordError(f"{name}: {raw!r} is not a valid {ctype}", kind="type",
                                       line_number=line_number, column=name)

    if values.get("salary") is not None and values["salary"] < 0:
        raise MalformedRecordError(f"salary may not be negative, got {values['salary']}",
                                   kind="negative_salary", line_number=line_number, column="salary")
    return values


def _decode(raw, line_number):
    if isinstance(raw, str):
        return raw
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedRecordError(f"invalid UTF-8 at byte {e.start}", kind="encoding",
                                   line_number=line_number)


def _split(line, line_number):
    try:
        return next(csv.reader([line]))
    except csv.Error as e:
        raise MalformedRecordError(str(e), kind="field_count", line_number=line_number)


def read_records(stream, columns, record_type, key_fields=(), skip_malformed=True, source="<stream>"):
    """
    Reads every line of a text or byte stream. Returns the records and an
    IngestSummary. key_fields lists the columns whose values must be unique;
    the first occurrence of a key wins. Byte lines are decoded one at a time
    so an undecodable line only rejects that row.
    """
    if isinstance(stream, (bytes, bytearray)):
        stream = io.BytesIO(stream)

    summary = IngestSummary(source)
    seen = {key: set() for key in key_fields}
    records = []

    for line_number, raw in enumerate(stream, start=1):
        if not raw.strip():
            continue
        summary.rows_read += 1
        try:
            fields = _split(_decode(raw, line_number), line_number)
            values = parse_row(fields, columns, line_number=line_number)
            for key in key_fields:
                if values[key] is None:
                    continue
                if values[key] in seen[key]:
                    raise MalformedRecordError(f"duplicate {key} {values[key]!r}", kind="duplicate_key",
                                               line_number=line_number, column=key)
            for key in key_fields:
                if values[key] is not None:
                    seen[key].add(values[key])
        except MalformedRecordError as e:
            if not skip_malformed:
                raise
            summary.reject(e)
            logger.warning(f"{source}: skipped malformed row, {e}")
            continue

        records.append(record_type(**values))
        summary.rows_loaded += 1

    logger.info(f"{source}: {summary.rows_loaded} rows loaded, {summary.rows_rejected} rejected")
    return records, summary


def _open_source(path):
    try:
        return open(path, "rb")
    except OSError as e:
        raise SourceUnavailableError(path, e.strerror or str(e))


def load_employees(path, skip_malformed=True):
    with _open_source(path) as f:
        return read_records(f, Employee_Columns, Employee, key_fields=("emp_id",),
                            skip_malformed=skip_malformed, source=path)


def load_departments(path, skip_malformed=True):
    with _open_source(path) as f:
        return read_records(f, Department_Columns, Department, key_fields=("dept_id", "department_name"),
                            skip_malformed=skip_malformed, source=path)


def load_sources(employees_path, departments_path, skip_malformed=True):
    """
    Loads both sources concurrently. Returns (employees, departments, summaries).
    """
    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="load") as pool:
        emp_future = pool.submit(load_employees, employees_path, skip_malformed)
        dept_future = pool.submit(load_departments, departments_path, skip_malformed)
        employees, emp_summary = emp_future.result()
        departments, dept_summary = dept_future.result()
    return employees, departments, [emp_summary, dept_summary]
