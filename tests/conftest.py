"""
================================================================================
Indicia Advanced Reports - Unified Test Configuration and Fixtures
================================================================================
Developed by Waqqas Hanafi
Calaveras County Health and Human Services Agency

Description:
    Shared pytest configuration and fixtures for all tests (unit and API).
    Provides a mock metrics engine and FastAPI test clients with the caller
    identity and engine dependencies overridden.

Fixtures:
    - mock_engine: MetricsEngine mock with canned report output
    - client: TestClient authenticated as CALLER_ID
    - anonymous_client: TestClient using the real identity dependency
    - params: Builds read-only query parameter mappings

================================================================================
"""
import os
import sys
from pathlib import Path
from unittest.mock import Mock

import pytest

# Keep the config singleton out of development mode (no log files in tests)
os.environ.setdefault('REPORTS_ENVIRONMENT', 'testing')

# Add project root to path for all tests
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from advanced_reports.reports.filters import freeze_params
from advanced_reports.reports.service import MetricsEngine

CALLER_ID = '42'

USER_METRICS = {
    'records': 120,
    'species': 45,
    'records_this_year': 30,
    'species_this_year': 12,
    'recorders': 9,
    'rank_by_records': 2,
    'rank_by_species': 3,
}

TAXA_LIST = [
    {'taxon_id': 'NBNSYS0000008319', 'taxon_name': 'Erithacus rubecula',
     'vernacular_name': 'Robin', 'taxon_rank': 'Species', 'taxon_group': 'bird', 'count': 14},
]


@pytest.fixture
def caller_id():
    """Warehouse user ID of the authenticated test caller"""
    return CALLER_ID


@pytest.fixture
def mock_engine():
    """MetricsEngine mock returning canned results"""
    engine = Mock(spec=MetricsEngine)
    engine.compute_user_metrics.return_value = dict(USER_METRICS)
    engine.compute_counts.return_value = {'records': 250}
    engine.compute_recorded_taxa_list.return_value = list(TAXA_LIST)
    return engine


@pytest.fixture
def engine_users():
    """User IDs the engine factory was asked to build engines for"""
    return []


@pytest.fixture
def engine_factory(mock_engine, engine_users):
    """Engine factory handing out the mock engine"""
    def factory(user_id):
        engine_users.append(user_id)
        return mock_engine
    return factory


@pytest.fixture
def client(engine_factory):
    """FastAPI test client authenticated as CALLER_ID"""
    from fastapi.testclient import TestClient
    from advanced_reports.app import app
    from advanced_reports.auth import CallerIdentity, require_caller
    from advanced_reports.reports.router import get_engine_factory

    app.dependency_overrides[require_caller] = lambda: CallerIdentity(warehouse_user_id=CALLER_ID)
    app.dependency_overrides[get_engine_factory] = lambda: engine_factory
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def anonymous_client(engine_factory):
    """FastAPI test client resolving the caller from request headers"""
    from fastapi.testclient import TestClient
    from advanced_reports.app import app
    from advanced_reports.reports.router import get_engine_factory

    app.dependency_overrides[get_engine_factory] = lambda: engine_factory
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def params():
    """Build a read-only query parameter mapping"""
    def _params(**kwargs):
        return freeze_params(kwargs)
    return _params
