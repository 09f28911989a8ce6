"""
The ten reports of the datamart.

Every report is a pure function of a ReportContext returning a Dataset. The
aggregations, the windowed ranking and the join are computed in process:
hash-map accumulation for GROUP BY, sort-within-group for RANK() and a hash
join on the department name. NULL semantics follow SQL: nulls are ignored
by averages, never satisfy a comparison and form their own group.
"""
import collections
import logging

from hr_warehouse.errors import EmptyPartitionError
from hr_warehouse.model.schema import Employee_Columns, column_names
from hr_warehouse.preprocessor.partition import OVERFLOW_PARTITION

logger = logging.getLogger(__name__)

AVG_SALARY_COLUMNS = [("department", "STRING"), ("avg_salary", "DOUBLE")]
JOB_ROLE_COUNT_COLUMNS = [("job_role", "STRING"), ("count", "BIGINT")]
DEPARTMENT_COUNT_COLUMNS = [("department", "STRING"), ("count", "BIGINT")]
LOCATION_COLUMNS = Employee_Columns + [("location", "STRING")]
SALARY_RANK_COLUMNS = [
    ("emp_id", "INT"),
    ("name", "STRING"),
    ("department", "STRING"),
    ("salary", "INT"),
    ("salary_rank", "INT"),
]


class Dataset:
    """A named, ordered, finite sequence of rows."""

    def __init__(self, name, columns, rows):
        self.name = name
        self.columns = list(columns)
        self.rows = tuple(tuple(row) for row in rows)

    @property
    def column_names(self):
        return column_names(self.columns)

    def as_dicts(self):
        names = self.column_names
        return [dict(zip(names, row)) for row in self.rows]

    def __iter__(self):
        return iter(self.rows)

    def __len__(self):
        return len(self.rows)

    def __repr__(self):
        return f"Dataset({self.name!r}, {len(self.rows)} rows)"


class ReportContext:
    """Immutable inputs shared by every report of a run."""

    def __init__(self, partitioned, departments=(), after_year=2015, target_project="Alpha", top_n=3):
        self.partitioned = partitioned
        self.departments = tuple(departments)
        self.after_year = after_year
        self.target_project = target_project
        self.top_n = top_n
        self.employees = tuple(partitioned.records())

    @classmethod
    def from_config(cls, config, partitioned, departments):
        return cls(partitioned, departments, after_year=config.after_year,
                   target_project=config.target_project, top_n=config.top_n)


REPORTS = collections.OrderedDict()


def report(name, columns):
    def register(func):
        def build(context):
            return Dataset(name, columns, func(context))
        build.__name__ = func.__name__
        build.__doc__ = func.__doc__
        build.report_name = name
        build.columns = columns
        REPORTS[name] = build
        return build
    return register


def _null_last(key):
    return (key is None, key if key is not None else "")


def group_by(records, field):
    groups = collections.OrderedDict()
    for record in records:
        groups.setdefault(getattr(record, field), []).append(record)
    return groups


def department_groups(partitioned):
    """
    Yields (department, rows) for every department present or declared.
    Declared partitions already hold a single department; the overflow
    partition mixes undeclared values and is regrouped.
    """
    groups = {}
    for key, rows in partitioned.partitions.items():
        if key == OVERFLOW_PARTITION:
            for department, overflow_rows in group_by(rows, "department").items():
                groups[department] = overflow_rows
        else:
            groups[key] = list(rows)
    for department in sorted(groups, key=_null_last):
        yield department, groups[department]


def mean_salary(rows, department):
    salaries = [e.salary for e in rows if e.salary is not None]
    if not salaries:
        raise EmptyPartitionError(department)
    return sum(salaries) / len(salaries)


def competition_rank(rows):
    """
    Ranks rows by salary descending, nulls last. Equal salaries share a rank
    and the next salary gets its 1-based position.
    """
    ordered = sorted(rows, key=lambda e: (e.salary is None, -(e.salary or 0), e.emp_id))
    ranked = []
    rank = 0
    previous = object()
    for position, employee in enumerate(ordered, start=1):
        if employee.salary != previous:
            rank = position
            previous = employee.salary
        ranked.append((employee, rank))
    return ranked


@report("joined-after-year", Employee_Columns)
def joined_after_year(context):
    return [e for e in context.employees
            if e.join_date is not None and e.join_date.year > context.after_year]


@report("avg-salary-by-department", AVG_SALARY_COLUMNS)
def avg_salary_by_department(context):
    rows = []
    for department, employees in department_groups(context.partitioned):
        try:
            rows.append((department, mean_salary(employees, department)))
        except EmptyPartitionError as e:
            logger.info(f"{e}, average reported as null")
            rows.append((department, None))
    return rows


@report("by-project", Employee_Columns)
def by_project(context):
    return [e for e in context.employees if e.project is not None and e.project == context.target_project]


@report("count-by-job-role", JOB_ROLE_COUNT_COLUMNS)
def count_by_job_role(context):
    groups = group_by(context.employees, "job_role")
    return [(role, len(groups[role])) for role in sorted(groups, key=_null_last)]


@report("above-department-average", Employee_Columns)
def above_department_average(context):
    averages = {}
    for department, employees in department_groups(context.partitioned):
        # NULL = NULL is not true, so a null department has no average to compare with
        if department is None:
            continue
        try:
            averages[department] = mean_salary(employees, department)
        except EmptyPartitionError:
            continue
    return [e for e in context.employees
            if e.salary is not None and e.department in averages and e.salary > averages[e.department]]


@report("department-with-most-employees", DEPARTMENT_COUNT_COLUMNS)
def department_with_most_employees(context):
    counts = [(department, len(rows)) for department, rows in department_groups(context.partitioned) if rows]
    if not counts:
        return []
    counts.sort(key=lambda item: (-item[1],) + _null_last(item[0]))
    return counts[:1]


@report("complete-records", Employee_Columns)
def complete_records(context):
    return [e for e in context.employees if all(value is not None for value in e)]


@report("with-department-location", LOCATION_COLUMNS)
def with_department_location(context):
    locations = {d.department_name: d.location for d in context.departments if d.department_name is not None}
    return [tuple(e) + (locations[e.department],)
            for e in context.employees if e.department is not None and e.department in locations]


@report("salary-rank-within-department", SALARY_RANK_COLUMNS)
def salary_rank_within_department(context):
    rows = []
    for department, employees in department_groups(context.partitioned):
        for employee, rank in competition_rank(employees):
            rows.append((employee.emp_id, employee.name, department, employee.salary, rank))
    return rows


@report("top-3-by-department", SALARY_RANK_COLUMNS)
def top_by_department(context):
    ranked = salary_rank_within_department(context)
    return [row for row in ranked if row[-1] <= context.top_n]
