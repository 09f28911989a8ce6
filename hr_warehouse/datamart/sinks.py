"""
Export targets of the report datasets. Each sink keys its output by report
name and overwrites what a previous run left there.
"""
import csv
import logging
import os
import shutil
import threading
from datetime import date

from py4j.protocol import Py4JJavaError
from pyspark.errors import AnalysisException
from pyspark.sql import SparkSession
from sqlalchemy import (
    BigInteger, Column, Date, Float, Integer, MetaData, String, Table, create_engine, inspect
)
from sqlalchemy.engine import Engine

from hr_warehouse.errors import ConfigError, ReportComputationError
from hr_warehouse.feeder.config import Config
from hr_warehouse.model.hive_metastore import partitioned_employees_ddl, spark_schema
from hr_warehouse.model.schema import PARTITION_COLUMN, Employee_Columns

logger = logging.getLogger(__name__)

# Hive's text serialization of NULL
NULL_MARKER = "\\N"

PARTITIONED_TABLE = "employees_partitioned"

SQL_TYPES = {
    "INT": Integer,
    "BIGINT": BigInteger,
    "DOUBLE": Float,
    "STRING": String,
    "DATE": Date,
}


def format_value(value):
    if value is None:
        return NULL_MARKER
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


class DirectorySink:
    """
    Writes <root>/<report>/000000_0 as comma delimited text, the layout of
    INSERT OVERWRITE DIRECTORY.
    """

    FILE_NAME = "000000_0"

    def __init__(self, root):
        self.root = root

    def path_for(self, name):
        return os.path.join(Config.get_report_path(self.root, name), self.FILE_NAME)

    def write(self, dataset):
        target = Config.get_report_path(self.root, dataset.name)
        if os.path.exists(target):
            shutil.rmtree(target)
        os.makedirs(target)

        with open(os.path.join(target, self.FILE_NAME), "w", encoding="utf-8", newline="") as f:
            writer = csv.writer(f, lineterminator="\n")
            for row in dataset.rows:
                writer.writerow([format_value(value) for value in row])
        logger.info(f"Report {dataset.name} written to {target} ({len(dataset)} rows)")


def table_name_for(report_name, prefix="rpt_"):
    return prefix + report_name.replace("-", "_")


class SqlSink:
    """One table per report, dropped and recreated on every write."""

    def __init__(self, url_or_engine, table_prefix="rpt_"):
        if isinstance(url_or_engine, Engine):
            self.engine = url_or_engine
        else:
            self.engine = create_engine(url_or_engine)
        self.table_prefix = table_prefix
        self._lock = threading.Lock()

    def table_for(self, dataset):
        columns = [Column(name, SQL_TYPES[ctype]) for name, ctype in dataset.columns]
        return Table(table_name_for(dataset.name, self.table_prefix), MetaData(), *columns)

    def write(self, dataset):
        table = self.table_for(dataset)
        with self._lock, self.engine.begin() as conn:
            table.drop(conn, checkfirst=True)
            table.create(conn)
            if dataset.rows:
                conn.execute(table.insert(), dataset.as_dicts())
        logger.info(f"Report {dataset.name} exported to table {table.name} ({len(dataset)} rows)")

    def report_tables(self):
        return sorted(t for t in inspect(self.engine).get_table_names() if t.startswith(self.table_prefix))


def get_spark_session(app_name="hr_warehouse", enable_hive=False):
    builder = SparkSession.builder.appName(app_name)
    if enable_hive:
        builder = builder.enableHiveSupport()
    return builder.getOrCreate()


class SparkSink:
    """
    Writes each report as a Spark DataFrame under <root>/<report>, or into a
    Hive table when a database is given.
    """

    def __init__(self, spark, root, fmt="parquet", database=None):
        self.spark = spark
        self.root = root
        self.fmt = fmt
        self.database = database

    def to_dataframe(self, rows, columns):
        return self.spark.createDataFrame([tuple(row) for row in rows], schema=spark_schema(columns))

    def _save(self, writer, name, table):
        if self.database:
            target = f"{self.database}.{table}"
            writer.format(self.fmt).saveAsTable(target)
        else:
            target = Config.get_report_path(self.root, name)
            writer.format(self.fmt).save(target)
        return target

    def write(self, dataset):
        try:
            df = self.to_dataframe(dataset.rows, dataset.columns)
            target = self._save(df.coalesce(1).write.mode("overwrite"), dataset.name, table_name_for(dataset.name))
        except (Py4JJavaError, AnalysisException) as e:
            logger.error(f"Spark error while writing report {dataset.name}: {e}")
            raise ReportComputationError(dataset.name, e) from e
        logger.info(f"Report {dataset.name} saved to {target}")

    def create_partitioned_table(self, name):
        """
        Declares the partitioned employee table in the metastore, then lets
        inserts create the department partitions dynamically.
        """
        table = f"{self.database}.{name}"
        self.spark.sql(f"CREATE DATABASE IF NOT EXISTS {self.database}")
        self.spark.sql(partitioned_employees_ddl(table, Employee_Columns))
        self.spark.conf.set("hive.exec.dynamic.partition", "true")
        self.spark.conf.set("hive.exec.dynamic.partition.mode", "nonstrict")
        logger.info(f"Hive table {table} ready")
        return table

    def write_partitioned_employees(self, partitioned, name=PARTITIONED_TABLE):
        """
        Writes the employee table partitioned by department, one directory
        per partition.
        """
        try:
            df = self.to_dataframe(partitioned.records(), Employee_Columns)
            if self.database:
                target = self.create_partitioned_table(name)
                # insertInto is positional: the partition column comes last in Employee_Columns
                df.write.insertInto(target, overwrite=True)
            else:
                target = Config.get_report_path(self.root, name)
                df.write.mode("overwrite").partitionBy(PARTITION_COLUMN).format(self.fmt).save(target)
        except (Py4JJavaError, AnalysisException) as e:
            logger.error(f"Spark error while writing {name}: {e}")
            raise ReportComputationError(name, e) from e
        logger.info(f"Partitioned employee table saved to {target}")
        return target


def build_sink(config, spark=None):
    if config.sink == "directory":
        return DirectorySink(config.output_dir)
    if config.sink == "sql":
        return SqlSink(config.database_url)
    if config.sink == "spark":
        if config.hive_database:
            spark = spark or get_spark_session(enable_hive=True)
            return SparkSink(spark, config.output_dir, database=config.hive_database)
        return SparkSink(spark or get_spark_session(), config.output_dir)
    raise ConfigError(f"Unknown sink {config.sink!r}")
