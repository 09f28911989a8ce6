import collections
import logging

from hr_warehouse.errors import UnknownPartitionKeyError

logger = logging.getLogger(__name__)

# Same name Hive gives the partition of null or unmatched dynamic partition values
OVERFLOW_PARTITION = "__HIVE_DEFAULT_PARTITION__"


class PartitionedEmployees:
    """
    Employees grouped by department: one partition per declared department,
    possibly empty, plus the overflow partition.
    """

    def __init__(self, partitions, declared, unknown_keys):
        self.partitions = partitions
        self.declared = declared
        self.unknown_keys = unknown_keys

    def records(self):
        rows = [e for partition in self.partitions.values() for e in partition]
        return sorted(rows, key=lambda e: e.emp_id)

    def departments(self):
        """Every department value present in the data, plus the declared ones."""
        observed = {e.department for e in self.partitions[OVERFLOW_PARTITION]}
        return set(self.declared) | observed

    @property
    def overflow(self):
        return self.partitions[OVERFLOW_PARTITION]

    def counts(self):
        return {key: len(rows) for key, rows in self.partitions.items()}

    def __len__(self):
        return sum(len(rows) for rows in self.partitions.values())


def partition_by_department(employees, declared_departments, strict=False):
    declared = frozenset(declared_departments)
    buckets = collections.OrderedDict((key, []) for key in sorted(declared))
    buckets[OVERFLOW_PARTITION] = []
    unknown = collections.Counter()

    for employee in employees:
        key = employee.department
        if key in declared:
            buckets[key].append(employee)
            continue
        if strict:
            raise UnknownPartitionKeyError(key)
        unknown[key] += 1
        buckets[OVERFLOW_PARTITION].append(employee)

    for value, rows in unknown.items():
        logger.warning(f"{UnknownPartitionKeyError(value, rows)}, routed to {OVERFLOW_PARTITION}")

    partitions = collections.OrderedDict((key, tuple(rows)) for key, rows in buckets.items())
    logger.info("Partitions: " + ", ".join(f"{key}={len(rows)}" for key, rows in partitions.items()))
    return PartitionedEmployees(partitions, declared, dict(unknown))
