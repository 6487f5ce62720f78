"""
Reports Module

Advanced reports endpoint answering per-user statistics, counts and recorded
taxa list queries against the occurrence search index. Layered as router,
handlers, filters and service.

Author: Waqqas Hanafi
Copyright: © 2025 Calaveras County Health and Human Services Agency
"""

from .router import router as reports_router
from ..errors import ReportError, BadRequest, Unauthorized, error_response
from .filters import select_report, validate_filter_parameters, build_filters
from .handlers import ReportDispatcher, build_report_request
from .models import ReportName, ReportRequest
from .service import MetricsEngine, RecorderMetrics, ElasticsearchClient

__all__ = [
    "reports_router",
    "ReportError",
    "BadRequest",
    "Unauthorized",
    "error_response",
    "select_report",
    "validate_filter_parameters",
    "build_filters",
    "ReportDispatcher",
    "build_report_request",
    "ReportName",
    "ReportRequest",
    "MetricsEngine",
    "RecorderMetrics",
    "ElasticsearchClient"
]
