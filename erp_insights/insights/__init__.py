"""
Insights Module

Business intelligence aggregation over the ERP row store.
"""
from .exceptions import ComputationError, InsightsError, InvalidInputError
from .repository import InsightsRepository
from .service import InsightsService

__all__ = [
    "ComputationError",
    "InsightsError",
    "InvalidInputError",
    "InsightsRepository",
    "InsightsService",
]
