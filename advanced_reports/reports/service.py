"""
Report Service (Data Access Layer)

Metrics engine behind the advanced reports. Defines the narrow interface the
report dispatcher depends on and an Elasticsearch implementation that runs
aggregation searches against the occurrence index over HTTP, with connection
pooling and retries.

Author: Waqqas Hanafi
Copyright: © 2025 Calaveras County Health and Human Services Agency
"""

import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Dict, Any, Optional, Sequence

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config import config, ElasticsearchConfig
from .filters import CREATED_BY_FIELD, YEAR_FIELD

logger = logging.getLogger(__name__)

SPECIES_FIELD = 'taxon.species_taxon_id'
ACCEPTED_TAXON_FIELD = 'taxon.accepted_taxon_id'
RANK_SORT_ORDER_FIELD = 'taxon.taxon_rank_sort_order'
RECORDER_NAME_FIELD = 'event.recorded_by.keyword'
MEDIA_FIELD = 'occurrence.media'

# Taxon ranks at or below species sort from 300 upwards
SPECIES_RANK_SORT_ORDER = 300

TAXON_SOURCE_FIELDS = [
    'taxon.accepted_taxon_id',
    'taxon.accepted_name',
    'taxon.vernacular_name',
    'taxon.taxon_rank',
    'taxon.group',
]


class MetricsEngineError(Exception):
    """Raised when the search backend returns something unusable"""


class MetricsEngine(ABC):
    """Computations the advanced reports are built from"""

    @abstractmethod
    def compute_user_metrics(self, filters: Dict[str, Any]) -> Dict[str, Any]:
        """Statistics for the calling user within the filtered records"""
        pass

    @abstractmethod
    def compute_counts(self, filters: Dict[str, Any], categories: Sequence[str]) -> Dict[str, int]:
        """Totals for each requested category within the filtered records"""
        pass

    @abstractmethod
    def compute_recorded_taxa_list(self, filters: Dict[str, Any], species_only: bool) -> List[Dict[str, Any]]:
        """Distinct taxa recorded within the filtered records"""
        pass


class ElasticsearchClient:
    """Thin HTTP client for the occurrence index _search endpoint"""

    def __init__(self, es_config: Optional[ElasticsearchConfig] = None):
        self.config = es_config or config.elasticsearch
        self._session: Optional[requests.Session] = None
        self._lock = threading.Lock()

    @property
    def session(self) -> requests.Session:
        """Get or create HTTP session with retries and pooling"""
        with self._lock:
            if self._session is None:
                self._session = self._build_session()
            return self._session

    def open(self) -> requests.Session:
        """Create the session up front (called from the app lifespan)"""
        return self.session

    def _build_session(self) -> requests.Session:
        session = requests.Session()
        retry = Retry(
            total=self.config.max_retries,
            backoff_factor=0.5,
            status_forcelist=[429, 502, 503, 504],
            # _search requests are POSTs
            allowed_methods=["GET", "HEAD", "POST"]
        )
        adapter = HTTPAdapter(max_retries=retry)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        session.verify = self.config.verify_certs

        if self.config.api_key:
            session.headers["Authorization"] = f"ApiKey {self.config.api_key}"
        elif self.config.username:
            session.auth = (self.config.username, self.config.password or "")

        return session

    def search(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """
        Run a search request against the configured index.

        Raises:
            requests.RequestException: on connection failure or error status
        """
        response = self.session.post(
            self.config.search_url,
            json=body,
            timeout=self.config.timeout_seconds
        )
        response.raise_for_status()
        return response.json()

    def ping(self) -> bool:
        """Check the cluster answers at all"""
        try:
            response = self.session.get(self.config.url, timeout=self.config.timeout_seconds)
            return response.ok
        except requests.RequestException as e:
            logger.warning(f"Elasticsearch ping failed: {e}")
            return False

    def close(self) -> None:
        """Close the session and release pooled connections"""
        with self._lock:
            if self._session is not None:
                self._session.close()
                self._session = None


def build_query(filters: Dict[str, Any], extra: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    """Convert report filters into a bool query of term clauses"""
    clauses = [{"term": {field: value}} for field, value in filters.items()]
    clauses.extend(extra or [])
    return {"bool": {"filter": clauses}}


def _total_hits(result: Dict[str, Any]) -> int:
    """Total hit count for both ES 6 (int) and ES 7+ ({"value": n}) responses"""
    total = result['hits']['total']
    if isinstance(total, dict):
        return int(total['value'])
    return int(total)


def _rank(buckets: List[Dict[str, Any]], user_id: str, value_of) -> Optional[int]:
    """Competition rank of a user among terms buckets, None if not ranked"""
    scores = {str(bucket['key']): value_of(bucket) for bucket in buckets}
    if str(user_id) not in scores:
        return None
    user_score = scores[str(user_id)]
    return 1 + sum(1 for score in scores.values() if score > user_score)


class RecorderMetrics(MetricsEngine):
    """Elasticsearch backed metrics for a single warehouse user"""

    def __init__(self, user_id: str, client: ElasticsearchClient):
        self.user_id = str(user_id)
        self.client = client
        self.es_config = client.config

    def _search(self, body: Dict[str, Any]) -> Dict[str, Any]:
        logger.debug(f"Searching {self.es_config.index} for user {self.user_id}: {body['query']}")
        return self.client.search(body)

    def compute_user_metrics(self, filters: Dict[str, Any]) -> Dict[str, Any]:
        """
        Statistics for this user plus their standing among all recorders.

        Returns:
            Dictionary with the user's record and species totals (overall and
            for the current year), the number of recorders in scope and the
            user's rank by records and by species (None when unranked).
        """
        this_year = datetime.now().year
        body = {
            "size": 0,
            "track_total_hits": True,
            "query": build_query(filters),
            "aggs": {
                "recorder_count": {"cardinality": {"field": CREATED_BY_FIELD}},
                "by_records": {
                    "terms": {"field": CREATED_BY_FIELD, "size": self.es_config.max_recorders}
                },
                "by_species": {
                    "terms": {
                        "field": CREATED_BY_FIELD,
                        "size": self.es_config.max_recorders,
                        "order": {"species": "desc"}
                    },
                    "aggs": {"species": {"cardinality": {"field": SPECIES_FIELD}}}
                },
                "user": {
                    "filter": {"term": {CREATED_BY_FIELD: self.user_id}},
                    "aggs": {
                        "species": {"cardinality": {"field": SPECIES_FIELD}},
                        "this_year": {
                            "filter": {"term": {YEAR_FIELD: this_year}},
                            "aggs": {"species": {"cardinality": {"field": SPECIES_FIELD}}}
                        }
                    }
                }
            }
        }
        result = self._search(body)
        try:
            aggs = result['aggregations']
            user = aggs['user']
            return {
                "records": user['doc_count'],
                "species": user['species']['value'],
                "records_this_year": user['this_year']['doc_count'],
                "species_this_year": user['this_year']['species']['value'],
                "recorders": aggs['recorder_count']['value'],
                "rank_by_records": _rank(
                    aggs['by_records']['buckets'], self.user_id,
                    lambda bucket: bucket['doc_count']
                ),
                "rank_by_species": _rank(
                    aggs['by_species']['buckets'], self.user_id,
                    lambda bucket: bucket['species']['value']
                ),
            }
        except (KeyError, TypeError) as e:
            raise MetricsEngineError(f"Unexpected user metrics response: missing {e}") from e

    def compute_counts(self, filters: Dict[str, Any], categories: Sequence[str]) -> Dict[str, int]:
        """
        Count records, species, photos and/or recorders.

        Returns:
            Dictionary keyed by category in the order requested
        """
        aggs: Dict[str, Any] = {}
        if 'species' in categories:
            aggs['species'] = {"cardinality": {"field": SPECIES_FIELD}}
        if 'photos' in categories:
            aggs['photos'] = {"filter": {"exists": {"field": MEDIA_FIELD}}}
        if 'recorders' in categories:
            aggs['recorders'] = {"cardinality": {"field": RECORDER_NAME_FIELD}}

        body: Dict[str, Any] = {
            "size": 0,
            "track_total_hits": True,
            "query": build_query(filters),
        }
        if aggs:
            body["aggs"] = aggs

        result = self._search(body)
        try:
            counts = {}
            for category in categories:
                if category == 'records':
                    counts[category] = _total_hits(result)
                elif category == 'photos':
                    counts[category] = result['aggregations']['photos']['doc_count']
                else:
                    counts[category] = result['aggregations'][category]['value']
            return counts
        except (KeyError, TypeError, ValueError) as e:
            raise MetricsEngineError(f"Unexpected counts response: missing {e}") from e

    def compute_recorded_taxa_list(self, filters: Dict[str, Any], species_only: bool) -> List[Dict[str, Any]]:
        """
        List the distinct taxa recorded, most frequently recorded first.

        Args:
            filters: Report filters
            species_only: Exclude taxa above species rank (genus, family etc.)
        """
        extra = []
        if species_only:
            extra.append({"range": {RANK_SORT_ORDER_FIELD: {"gte": SPECIES_RANK_SORT_ORDER}}})

        body = {
            "size": 0,
            "query": build_query(filters, extra),
            "aggs": {
                "taxa": {
                    "terms": {
                        "field": ACCEPTED_TAXON_FIELD,
                        "size": self.es_config.max_taxa,
                        "order": {"_count": "desc"}
                    },
                    "aggs": {
                        "taxon": {
                            "top_hits": {
                                "size": 1,
                                "_source": {"includes": TAXON_SOURCE_FIELDS}
                            }
                        }
                    }
                }
            }
        }
        result = self._search(body)
        try:
            taxa = []
            for bucket in result['aggregations']['taxa']['buckets']:
                hits = bucket['taxon']['hits']['hits']
                taxon = hits[0]['_source'].get('taxon', {}) if hits else {}
                taxa.append({
                    "taxon_id": bucket['key'],
                    "taxon_name": taxon.get('accepted_name'),
                    "vernacular_name": taxon.get('vernacular_name'),
                    "taxon_rank": taxon.get('taxon_rank'),
                    "taxon_group": taxon.get('group'),
                    "count": bucket['doc_count'],
                })
            return taxa
        except (KeyError, TypeError) as e:
            raise MetricsEngineError(f"Unexpected taxa list response: missing {e}") from e
