"""
Hive DDL and Spark schemas generated from the fixed column schemas.
"""
from pyspark.sql.types import (
    DateType, DoubleType, IntegerType, LongType, StringType, StructField, StructType
)

from hr_warehouse.model.schema import PARTITION_COLUMN

SPARK_TYPES = {
    "INT": IntegerType,
    "BIGINT": LongType,
    "DOUBLE": DoubleType,
    "STRING": StringType,
    "DATE": DateType,
}


def spark_schema(columns):
    return StructType([StructField(name, SPARK_TYPES[ctype](), True) for name, ctype in columns])


def create_table_ddl(table, columns, location=None, stored_as="TEXTFILE", partitioned_by=None):
    """
    Builds the CREATE TABLE statement of a table. Partition columns are moved
    out of the column list into PARTITIONED BY, as Hive requires.
    """
    partitioned_by = partitioned_by or []
    body = ",\n".join(
        f"    {name} {ctype}" for name, ctype in columns if name not in partitioned_by
    )
    types = dict(columns)
    lines = [f"CREATE EXTERNAL TABLE IF NOT EXISTS {table} (", body, ")"]
    if partitioned_by:
        parts = ", ".join(f"{name} {types[name]}" for name in partitioned_by)
        lines.append(f"PARTITIONED BY ({parts})")
    if stored_as == "TEXTFILE":
        lines.append("ROW FORMAT DELIMITED")
        lines.append("FIELDS TERMINATED BY ','")
    lines.append(f"STORED AS {stored_as}")
    if location:
        lines.append(f"LOCATION '{location}'")
    return "\n".join(lines)


def partitioned_employees_ddl(table, columns, location=None):
    return create_table_ddl(table, columns, location=location, stored_as="PARQUET",
                            partitioned_by=[PARTITION_COLUMN])
