"""
Backend data source: the API facade and its typed response models.
"""

from company_lookup.datasource.lookup_api import CompanyLookupApi
from company_lookup.datasource.models import (
    ApiResponse,
    CompanyLookup,
    Filing,
    ResponseStatus,
    SearchResult,
    StockData,
    Suggestion,
)

__all__ = [
    "CompanyLookupApi",
    "ApiResponse",
    "CompanyLookup",
    "Filing",
    "ResponseStatus",
    "SearchResult",
    "StockData",
    "Suggestion",
]
