"""
Record types and column schemas of the two input tables.
Type names follow Hive so the same schemas drive the DDL and the sinks.
"""
import collections
from typing import List, Tuple

Employee_Columns: List[Tuple[str, str]] = [
    ("emp_id", "INT"),
    ("name", "STRING"),
    ("age", "INT"),
    ("job_role", "STRING"),
    ("salary", "INT"),
    ("project", "STRING"),
    ("join_date", "DATE"),
    ("department", "STRING"),
]

Department_Columns: List[Tuple[str, str]] = [
    ("dept_id", "INT"),
    ("department_name", "STRING"),
    ("location", "STRING"),
]

Employee = collections.namedtuple("Employee", [name for name, _ in Employee_Columns])

Department = collections.namedtuple("Department", [name for name, _ in Department_Columns])

# Columns that may never be null
REQUIRED_COLUMNS = {"emp_id", "dept_id"}

PARTITION_COLUMN = "department"


def column_names(columns):
    return [name for name, _ in columns]
