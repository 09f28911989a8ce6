"""
Batch pipeline loading employee and department records, partitioning
employees by department and exporting a fixed set of reports.
"""

__version__ = "0.1.0"
