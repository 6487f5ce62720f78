"""
Report Filters

Report selection, filter validation and filter building. Turns the raw query
string of a report request into an authorization decision and a mapping of
Elasticsearch document fields to filter values. Query parameters are always
passed in explicitly as a read-only mapping.

Author: Waqqas Hanafi
Copyright: © 2025 Calaveras County Health and Human Services Agency
"""

import logging
from types import MappingProxyType
from typing import Optional, Mapping, Dict, Any

from ..errors import BadRequest, Unauthorized
from .models import ReportName, VALID_REPORTS

logger = logging.getLogger(__name__)

# Query parameter -> Elasticsearch document field
SURVEY_FIELD = 'metadata.survey.id'
GROUP_FIELD = 'metadata.group.id'
TAXON_GROUP_FIELD = 'taxon.group_id'
YEAR_FIELD = 'event.year'
CREATED_BY_FIELD = 'metadata.created_by_id'


def freeze_params(params: Optional[Mapping[str, str]]) -> Mapping[str, str]:
    """Copy query parameters into a read-only mapping"""
    return MappingProxyType(dict(params or {}))


def is_empty(value: Optional[str]) -> bool:
    """
    True for parameters that count as not supplied.

    Missing values, empty strings and "0" are all treated as empty, matching
    the warehouse's existing reporting endpoints.
    """
    return value is None or value == '' or value == '0'


def select_report(report: Optional[str]) -> ReportName:
    """
    Resolve the report name from the URL path.

    Raises:
        BadRequest: if the name is empty or not one of the advanced reports
    """
    if not report or report not in VALID_REPORTS:
        logger.info(f"Rejected request for unknown report '{report}'")
        raise BadRequest('Missing or incorrect report url.')
    return ReportName(report)


def validate_filter_parameters(
    report: ReportName,
    caller_id: str,
    params: Mapping[str, str]
) -> None:
    """
    Check the query parameters are valid for the report.

    * All reports must filter by survey_id or group_id.
    * If filtering by user_id, it must be for the caller, except for
      user-stats which always reports on the caller and ignores user_id.

    Raises:
        BadRequest: if neither survey_id nor group_id is given
        Unauthorized: if another user's data is requested
    """
    if is_empty(params.get('survey_id')) and is_empty(params.get('group_id')):
        logger.info(f"Report {report.value}: survey_id or group_id missing")
        raise BadRequest('Parameter for survey_id or group_id missing from query string.')

    user_id = params.get('user_id')
    if (
        not is_empty(user_id)
        and str(user_id) != str(caller_id)
        and report is not ReportName.USER_STATS
    ):
        logger.warning(
            f"Report {report.value}: user {caller_id} requested data for user {user_id}"
        )
        raise Unauthorized("Cannot request other user's data.")


def build_filters(report: ReportName, params: Mapping[str, str]) -> Dict[str, Any]:
    """
    Build the filters to apply to the report search.

    Args:
        report: Report being run
        params: Validated query parameters

    Returns:
        Ordered dict of Elasticsearch field name -> value. Only one of the
        survey or group filters is ever present, survey taking precedence.
    """
    filters: Dict[str, Any] = {}

    if not is_empty(params.get('survey_id')):
        filters[SURVEY_FIELD] = params['survey_id']
    elif not is_empty(params.get('group_id')):
        filters[GROUP_FIELD] = params['group_id']

    # Optional taxon group filter
    if not is_empty(params.get('taxon_group_id')):
        filters[TAXON_GROUP_FIELD] = params['taxon_group_id']

    # user-stats ignores year and user_id
    if report is not ReportName.USER_STATS:
        if not is_empty(params.get('year')):
            filters[YEAR_FIELD] = params['year']
        if not is_empty(params.get('user_id')):
            filters[CREATED_BY_FIELD] = params['user_id']

    return filters
