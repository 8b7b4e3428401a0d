"""
API v1 Router
"""

from fastapi import APIRouter

from . import data_packages, data_streams, delivery_criteria, notifications, organizations, subscriptions

router = APIRouter()

router.include_router(organizations.router, prefix="/organizations", tags=["Organizations"])
router.include_router(data_streams.router, prefix="/data-streams", tags=["Data streams"])
router.include_router(subscriptions.router, prefix="/subscriptions", tags=["Subscriptions"])
router.include_router(data_packages.router, prefix="/data-packages", tags=["Data packages"])
router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
router.include_router(delivery_criteria.router, prefix="/delivery-criteria", tags=["Delivery criteria"])


@router.get("/", tags=["API"])
async def api_root():
    """API root — returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/organizations",
            "/data-streams",
            "/subscriptions",
            "/data-packages",
            "/notifications",
            "/delivery-criteria/validation",
        ],
    }
