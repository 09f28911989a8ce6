import logging
from datetime import date

import pytest
from py4j.protocol import Py4JJavaError

from hr_warehouse.datamart.reports import ReportContext
from hr_warehouse.feeder.config import Config
from hr_warehouse.model.schema import Department, Employee
from hr_warehouse.preprocessor.partition import partition_by_department

DECLARED = Config.DEFAULT_DEPARTMENTS

EMPLOYEES_CSV = """\
1,Alice,30,Engineer,75000,Alpha,2016-03-14,Engineering
2,Bob,45,Manager,92000,Beta,2012-07-01,Engineering
3,Carol,28,Analyst,54000,Gamma,2019-01-20,Finance
4,Dan,38,Recruiter,48000,Alpha,2015-11-02,HR
5,Erin,33,Recruiter,48000,Delta,2017-05-23,HR
6,Frank,50,Director,120000,Beta,2010-02-08,Sales
7,Grace,26,Analyst,51000,Alpha,2021-09-13,Marketing
8,Heidi,41,Engineer,88000,Gamma,2014-04-30,Engineering
9,Ivan,29,Sales Rep,43000,Delta,2020-06-15,Sales
10,Judy,35,Accountant,61000,,2018-10-01,Finance
11,Ken,31,Engineer,70000,Alpha,2016-08-08,Research
"""

DEPARTMENTS_CSV = """\
1,HR,New York
2,Engineering,San Francisco
3,Marketing,Chicago
4,Finance,Boston
5,Sales,Austin
"""


def employee(emp_id, salary, department, name=None, age=30, job_role="Engineer",
             project="Alpha", join_date=date(2016, 1, 1)):
    return Employee(emp_id=emp_id, name=name or f"E{emp_id}", age=age, job_role=job_role,
                    salary=salary, project=project, join_date=join_date, department=department)


def make_context(employees, departments=(), declared=DECLARED, **kwargs):
    partitioned = partition_by_department(employees, declared)
    return ReportContext(partitioned, departments, **kwargs)


@pytest.fixture
def source_files(tmp_path):
    employees = tmp_path / "employees.csv"
    departments = tmp_path / "departments.csv"
    employees.write_text(EMPLOYEES_CSV, encoding="utf-8")
    departments.write_text(DEPARTMENTS_CSV, encoding="utf-8")
    return str(employees), str(departments)


@pytest.fixture
def departments():
    return [
        Department(1, "HR", "New York"),
        Department(2, "Engineering", "San Francisco"),
        Department(3, "Marketing", "Chicago"),
        Department(4, "Finance", "Boston"),
        Department(5, "Sales", "Austin"),
    ]


@pytest.fixture
def sample_employees():
    return [
        employee(1, 75000, "Engineering", name="Alice", join_date=date(2016, 3, 14)),
        employee(2, 92000, "Engineering", name="Bob", job_role="Manager", project="Beta",
                 join_date=date(2012, 7, 1)),
        employee(3, 54000, "Finance", name="Carol", job_role="Analyst", project="Gamma",
                 join_date=date(2019, 1, 20)),
        employee(4, 48000, "HR", name="Dan", job_role="Recruiter", join_date=date(2015, 11, 2)),
        employee(5, 48000, "HR", name="Erin", job_role="Recruiter", project="Delta",
                 join_date=date(2017, 5, 23)),
        employee(6, 120000, "Sales", name="Frank", job_role="Director", project="Beta",
                 join_date=date(2010, 2, 8)),
        employee(7, 51000, "Marketing", name="Grace", job_role="Analyst", join_date=date(2021, 9, 13)),
        employee(8, 88000, "Engineering", name="Heidi", project="Gamma", join_date=date(2014, 4, 30)),
        employee(9, 43000, "Sales", name="Ivan", job_role="Sales Rep", project="Delta",
                 join_date=date(2020, 6, 15)),
        employee(10, 61000, "Finance", name="Judy", job_role="Accountant", project=None,
                 join_date=date(2018, 10, 1)),
    ]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("HRW_DECLARED_DEPARTMENTS", "HRW_AFTER_YEAR", "HRW_TARGET_PROJECT", "HRW_TOP_N",
                 "HRW_WORKERS", "HRW_EMPLOYEES_PATH", "HRW_DEPARTMENTS_PATH", "HRW_OUTPUT_DIR",
                 "HRW_SINK", "DATABASE_URL", "HRW_SKIP_MALFORMED", "HRW_STRICT_PARTITIONS",
                 "HRW_HIVE_DATABASE"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class FakeJavaError(Py4JJavaError):
    """Py4JJavaError without a JVM behind it."""

    def __init__(self, message):
        Exception.__init__(self, message)

    def __str__(self):
        return self.args[0]


class FakeWriter:
    def __init__(self):
        self.calls = []

    def __getattr__(self, name):
        def record(*args, **kwargs):
            self.calls.append((name,) + args + tuple(sorted(kwargs.items())))
            return self
        return record


class FakeDataFrame:
    def __init__(self, rows, schema, writer):
        self.rows = rows
        self.schema = schema
        self.write = writer

    def coalesce(self, n):
        return self


class FakeConf:
    def __init__(self):
        self.values = {}

    def set(self, key, value):
        self.values[key] = value


class FakeSpark:
    """Records what a SparkSink asks of the session."""

    def __init__(self, fail=False):
        self.fail = fail
        self.statements = []
        self.conf = FakeConf()
        self.writer = FakeWriter()

    def sql(self, statement):
        self.statements.append(statement)

    def createDataFrame(self, rows, schema=None):
        if self.fail:
            raise FakeJavaError("java.io.IOException: No space left on device")
        return FakeDataFrame(rows, schema, self.writer)
