"""
Reporting Module

Report assembly, request parsing and exports.
"""
from .assembler import ReportAssembler, Snapshot, utc_now
from .periods import DateRange, ExportFormat, ReportPeriod, ReportType

__all__ = [
    "ReportAssembler",
    "Snapshot",
    "utc_now",
    "DateRange",
    "ExportFormat",
    "ReportPeriod",
    "ReportType",
]
