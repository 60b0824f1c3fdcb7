"""Coverage aggregation and report generation."""

from buildgate.coverage.aggregator import (
    AggregationPlan,
    CoverageAggregator,
    CoverageLayout,
    ExclusionRule,
)
from buildgate.coverage.base import ReportFormat, ReportGenerator, ReportRequest, ReportResult
from buildgate.coverage.jacoco import JaCoCoCliReportGenerator

__all__ = [
    "AggregationPlan",
    "CoverageAggregator",
    "CoverageLayout",
    "ExclusionRule",
    "JaCoCoCliReportGenerator",
    "ReportFormat",
    "ReportGenerator",
    "ReportRequest",
    "ReportResult",
]
