class WarehouseError(Exception):
    pass


class ConfigError(WarehouseError):
    pass


class SourceUnavailableError(WarehouseError):
    """An input source could not be opened. Fatal for the whole run."""

    def __init__(self, path, reason):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot open input source {path}: {reason}")


class MalformedRecordError(WarehouseError):
    """A row does not match its column schema."""

    def __init__(self, message, kind="type", line_number=None, column=None):
        self.kind = kind
        self.line_number = line_number
        self.column = column
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)


class UnknownPartitionKeyError(WarehouseError):
    """A department value outside the declared partition keys."""

    def __init__(self, value, rows=1):
        self.value = value
        self.rows = rows
        super().__init__(f"Undeclared department {value!r} ({rows} rows)")


class EmptyPartitionError(WarehouseError):
    """An aggregate was requested over zero rows."""

    def __init__(self, partition):
        self.partition = partition
        super().__init__(f"No rows to aggregate for department {partition!r}")


class ReportComputationError(WarehouseError):
    """A single report failed. Never propagated to the other reports."""

    def __init__(self, report, cause):
        self.report = report
        self.cause = cause
        super().__init__(f"Report {report} failed: {cause}")
