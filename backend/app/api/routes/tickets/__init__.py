"""
Ticket Routes Module

- crud.py: create, list, get tickets
- lifecycle.py: status, responses, forward, delete
"""

from fastapi import APIRouter

from .crud import router as crud_router
from .lifecycle import router as lifecycle_router

router = APIRouter()
router.include_router(crud_router)
router.include_router(lifecycle_router)

__all__ = ["router"]
