"""
Report Models

Value types shared by the report pipeline: the closed set of report names,
count categories and the validated request handed to the dispatcher.

Author: Waqqas Hanafi
Copyright: © 2025 Calaveras County Health and Human Services Agency
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple, Any


class ReportName(str, Enum):
    """Advanced reports that can be requested in the URL path"""
    USER_STATS = "user-stats"
    COUNTS = "counts"
    RECORDED_TAXA_LIST = "recorded-taxa-list"


class CountCategory(str, Enum):
    """Categories the counts report can total"""
    RECORDS = "records"
    SPECIES = "species"
    PHOTOS = "photos"
    RECORDERS = "recorders"


VALID_REPORTS = tuple(r.value for r in ReportName)
VALID_CATEGORIES = tuple(c.value for c in CountCategory)
DEFAULT_CATEGORIES: Tuple[str, ...] = (CountCategory.RECORDS.value,)


@dataclass(frozen=True)
class ReportRequest:
    """A fully validated request, ready for dispatch"""
    report: ReportName
    caller_id: str
    filters: Dict[str, Any]
    categories: Tuple[str, ...] = ()
    species_only: bool = False
