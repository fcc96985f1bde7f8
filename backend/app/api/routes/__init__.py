"""API Routes module"""
from fastapi import APIRouter

from .tickets import router as tickets_router
from .access import router as access_router, public_router as product_access_router
from .principals import router as principals_router, permissions_router
from .realtime import router as realtime_router
from .roles import router as roles_router
from .notifications import router as notifications_router

# Main API router
api_router = APIRouter()

api_router.include_router(tickets_router, prefix="/tickets", tags=["Tickets"])
api_router.include_router(access_router, prefix="/access", tags=["Product Access"])
api_router.include_router(product_access_router, prefix="/products", tags=["Product Access"])
api_router.include_router(principals_router, prefix="/principals", tags=["Principals"])
api_router.include_router(permissions_router, prefix="/permissions", tags=["Permissions"])
api_router.include_router(realtime_router, prefix="/realtime", tags=["Realtime"])
api_router.include_router(roles_router, prefix="/roles", tags=["Enterprise Roles"])
api_router.include_router(notifications_router, prefix="/notifications", tags=["Notifications"])

__all__ = ["api_router"]
