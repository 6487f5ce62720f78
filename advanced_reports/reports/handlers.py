"""
Report Handlers (Business Logic Layer)

Turns a validated report name, caller and query string into a ReportRequest
and dispatches it to the matching metrics engine computation.

Author: Waqqas Hanafi
Copyright: © 2025 Calaveras County Health and Human Services Agency
"""

import logging
from typing import Any, Mapping, Tuple

from ..errors import BadRequest
from .filters import build_filters, validate_filter_parameters
from .models import ReportName, ReportRequest, VALID_CATEGORIES, DEFAULT_CATEGORIES
from .service import MetricsEngine

logger = logging.getLogger(__name__)


def parse_categories(params: Mapping[str, str]) -> Tuple[str, ...]:
    """
    Categories to count, defaulting to just records.

    Raises:
        BadRequest: naming the first token that is not a valid category
    """
    if 'categories' not in params or params['categories'] is None:
        return DEFAULT_CATEGORIES

    categories = []
    for category in params['categories'].split(','):
        if category not in VALID_CATEGORIES:
            raise BadRequest(f"Parameter for categories contains invalid value {category}.")
        if category not in categories:
            categories.append(category)
    return tuple(categories)


def resolve_species_only(params: Mapping[str, str]) -> bool:
    """True when higher taxa should be left out of a taxa list"""
    # exclude_higher_taxa is deprecated in favour of species_only
    exclude_higher_taxa = params.get('exclude_higher_taxa') == 't'
    species_only = params.get('species_only') == 't'
    return exclude_higher_taxa or species_only


def build_report_request(
    report: ReportName,
    caller_id: str,
    params: Mapping[str, str]
) -> ReportRequest:
    """
    Validate the query string and assemble the request to dispatch.

    Raises:
        BadRequest: missing survey/group filter or invalid categories
        Unauthorized: another user's data requested
    """
    validate_filter_parameters(report, caller_id, params)
    filters = build_filters(report, params)

    if report is ReportName.COUNTS:
        return ReportRequest(report, caller_id, filters, categories=parse_categories(params))
    if report is ReportName.RECORDED_TAXA_LIST:
        return ReportRequest(report, caller_id, filters, species_only=resolve_species_only(params))
    return ReportRequest(report, caller_id, filters)


class ReportDispatcher:
    """Routes a validated request to one metrics engine computation"""

    def __init__(self, engine: MetricsEngine):
        self.engine = engine

    def dispatch(self, request: ReportRequest) -> Any:
        """Run the report and return its JSON-ready output"""
        logger.debug(f"Dispatching {request.report.value} for user {request.caller_id} with {request.filters}")

        if request.report is ReportName.USER_STATS:
            return self.engine.compute_user_metrics(request.filters)
        elif request.report is ReportName.COUNTS:
            return self.engine.compute_counts(request.filters, list(request.categories))
        elif request.report is ReportName.RECORDED_TAXA_LIST:
            return self.engine.compute_recorded_taxa_list(request.filters, request.species_only)

        # Only reachable if ReportName gains a member without a branch here
        raise BadRequest('Unknown advanced report requested.')
