"""
Report Router (API Layer)

FastAPI router exposing the advanced reports endpoint. The report name is
checked before anything else, then the caller is resolved, the query string
validated and turned into filters, and the request dispatched to the metrics
engine.

Author: Waqqas Hanafi
Copyright: © 2025 Calaveras County Health and Human Services Agency
"""

import logging
import threading
from typing import Callable

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from ..auth import CallerIdentity, require_caller
from ..config import config
from ..errors import BadRequest, SUCCESS_CORS_HEADERS
from .filters import freeze_params, select_report
from .handlers import ReportDispatcher, build_report_request
from .models import ReportName
from .service import ElasticsearchClient, MetricsEngine, RecorderMetrics

logger = logging.getLogger(__name__)
router = APIRouter(prefix=config.web.route_prefix, tags=["advanced-reports"])

EngineFactory = Callable[[str], MetricsEngine]


def get_report_name(report: str) -> ReportName:
    """Path parameter dependency, resolved before any other"""
    return select_report(report)


_es_client_lock = threading.Lock()


def get_es_client() -> ElasticsearchClient:
    """Shared Elasticsearch client, created by the app lifespan"""
    from ..app import app_state
    with _es_client_lock:
        if app_state.get("es_client") is None:
            app_state["es_client"] = ElasticsearchClient()
        return app_state["es_client"]


def get_engine_factory(client: ElasticsearchClient = Depends(get_es_client)) -> EngineFactory:
    """Builds a metrics engine for a given warehouse user"""
    def factory(user_id: str) -> MetricsEngine:
        return RecorderMetrics(user_id, client)
    return factory


@router.get("")
@router.get("/")
def missing_report():
    """No report name in the url"""
    raise BadRequest('Missing or incorrect report url.')


@router.get("/{report}")
def get_report(
    request: Request,
    report: ReportName = Depends(get_report_name),
    caller: CallerIdentity = Depends(require_caller),
    engine_factory: EngineFactory = Depends(get_engine_factory)
):
    """Run an advanced report (user-stats, counts or recorded-taxa-list)"""
    params = freeze_params(request.query_params)
    report_request = build_report_request(report, caller.warehouse_user_id, params)

    engine = engine_factory(caller.warehouse_user_id)
    output = ReportDispatcher(engine).dispatch(report_request)
    logger.info(f"Report {report.value} generated for user {caller.warehouse_user_id}")

    return JSONResponse(content=output, status_code=200, headers=SUCCESS_CORS_HEADERS)


@router.options("/{report}")
def report_preflight(report: str):
    """CORS preflight for the report endpoint"""
    return Response(status_code=200, headers=SUCCESS_CORS_HEADERS)
