"""
Runs the whole batch: LOAD -> PARTITION -> QUERY*.

    python -m hr_warehouse.main --employees data/employees.csv \
        --departments data/departments.csv --output output
"""
import argparse
import logging
import sys

from hr_warehouse.datamart.reports import REPORTS, ReportContext
from hr_warehouse.datamart.runner import FAILED, ReportResult, run_reports
from hr_warehouse.datamart.sinks import SparkSink, build_sink
from hr_warehouse.errors import ConfigError, ReportComputationError, WarehouseError
from hr_warehouse.feeder.config import Config
from hr_warehouse.feeder.ingest import load_sources
from hr_warehouse.logger import setup_logger
from hr_warehouse.preprocessor.partition import partition_by_department

logger = logging.getLogger(__name__)


class PipelineSummary:
    def __init__(self, ingest, unknown_keys, reports, partition_counts=None):
        self.ingest = ingest
        self.unknown_keys = unknown_keys
        self.reports = reports
        self.partition_counts = partition_counts or {}

    @property
    def failed(self):
        return [r for r in self.reports if not r.ok]

    @property
    def ok(self):
        return not self.failed

    def report(self, name):
        for result in self.reports:
            if result.name == name:
                return result
        raise KeyError(name)


def run_pipeline(config, sink=None, cancel=None, spark=None):
    employees, departments, ingest = load_sources(
        config.employees_path, config.departments_path, skip_malformed=config.skip_malformed)
    if cancel is not None and cancel.is_set():
        logger.warning("Run cancelled after LOAD, nothing produced")
        return PipelineSummary(ingest, {}, [])

    partitioned = partition_by_department(employees, config.declared_departments,
                                          strict=config.strict_partitions)

    if sink is None:
        sink = build_sink(config, spark=spark)
    results = []
    if isinstance(sink, SparkSink):
        try:
            sink.write_partitioned_employees(partitioned)
        except ReportComputationError as e:
            results.append(ReportResult(e.report, FAILED, error=e))

    context = ReportContext.from_config(config, partitioned, departments)
    results += run_reports(context, sink=sink, workers=config.workers, cancel=cancel)
    return PipelineSummary(ingest, partitioned.unknown_keys, results, partitioned.counts())


def log_summary(summary):
    for item in summary.ingest:
        logger.info(f"Ingest {item.source}: read={item.rows_read} loaded={item.rows_loaded} "
                    f"rejected={dict(item.errors)}")
    for value, rows in summary.unknown_keys.items():
        logger.warning(f"Undeclared department {value!r}: {rows} rows in overflow partition")
    for result in summary.reports:
        if result.ok:
            logger.info(f"  {result.name}: {len(result.dataset)} rows")
        else:
            logger.error(f"  {result.name}: {result.status} {result.error or ''}")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Load employees and departments, export the reports.")
    parser.add_argument("--employees", help="employees source (comma separated, no header)")
    parser.add_argument("--departments", help="departments source (comma separated, no header)")
    parser.add_argument("--output", help="output directory of the reports")
    parser.add_argument("--sink", choices=Config.SINKS)
    parser.add_argument("--database-url", help="database of the sql sink")
    parser.add_argument("--hive-database", help="Hive database of the spark sink")
    parser.add_argument("--after-year", type=int)
    parser.add_argument("--project", help="project selected by the by-project report")
    parser.add_argument("--top-n", type=int)
    parser.add_argument("--workers", type=int)
    parser.add_argument("--departments-declared", help="comma separated partition keys")
    parser.add_argument("--strict", action="store_true", help="fail on malformed rows and undeclared departments")
    parser.add_argument("--log-dir", default="logs")
    parser.add_argument("--list-reports", action="store_true")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    if args.list_reports:
        for name in REPORTS:
            print(name)
        return 0

    setup_logger(args.log_dir)
    try:
        config = Config(
            declared_departments=args.departments_declared.split(",") if args.departments_declared else None,
            after_year=args.after_year,
            target_project=args.project,
            top_n=args.top_n,
            workers=args.workers,
            employees_path=args.employees,
            departments_path=args.departments,
            output_dir=args.output,
            sink=args.sink,
            database_url=args.database_url,
            hive_database=args.hive_database,
            skip_malformed=False if args.strict else None,
            strict_partitions=True if args.strict else None,
        )
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2
    logger.info(f"Starting pipeline with {config}")

    try:
        summary = run_pipeline(config)
    except WarehouseError as e:
        logger.error(f"{e}")
        return 2

    log_summary(summary)
    logger.info("Pipeline finished")
    return 0 if summary.ok else 1


if __name__ == "__main__":
    sys.exit(main())
