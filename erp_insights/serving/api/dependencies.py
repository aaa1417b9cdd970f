"""
Request Dependencies

Organization scope and service construction for the insights routes.
"""

from fastapi import Request

from erp_insights.config import get_settings
from erp_insights.database.connection import get_session_factory
from erp_insights.insights.exceptions import InvalidInputError
from erp_insights.insights.repository import InsightsRepository
from erp_insights.insights.service import InsightsService


async def get_organization_id(request: Request) -> int:
    """
    Organization id from the header set by the upstream access layer.

    Raises:
        InvalidInputError: If the header is missing or not an integer
    """
    header = get_settings().api.organization_header
    raw = request.headers.get(header)
    if not raw:
        raise InvalidInputError("No organization selected")
    try:
        return int(raw)
    except ValueError:
        raise InvalidInputError("Invalid organization id")


def get_insights_service() -> InsightsService:
    """Service bound to the shared session factory"""
    return InsightsService(
        repository=InsightsRepository(get_session_factory()),
        settings=get_settings().insights,
    )
