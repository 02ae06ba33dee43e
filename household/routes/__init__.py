"""
HTTP and WebSocket routes of the household API.
"""

from fastapi import APIRouter

from household.routes import (
    auth,
    calls,
    catalog,
    chat,
    documents,
    events,
    medications,
    profiles,
    push,
    recipes,
    shopping,
)

router = APIRouter()
router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(profiles.router, prefix="/profiles", tags=["profiles"])
router.include_router(catalog.router, tags=["catalog"])
router.include_router(shopping.router, prefix="/shopping", tags=["shopping"])
router.include_router(shopping.purchases_router, prefix="/purchases", tags=["shopping"])
router.include_router(recipes.router, prefix="/recipes", tags=["recipes"])
router.include_router(chat.router, prefix="/chat", tags=["chat"])
router.include_router(calls.router, prefix="/calls", tags=["calls"])
router.include_router(events.router, prefix="/calendar", tags=["calendar"])
router.include_router(events.medication_router, prefix="/medications", tags=["medications"])
router.include_router(
    medications.router, prefix="/medications/inventory", tags=["medications"]
)
router.include_router(documents.router, prefix="/documents", tags=["documents"])
router.include_router(push.router, prefix="/push", tags=["push"])
router.include_router(chat.socket_router, prefix="/ws")
router.include_router(calls.socket_router, prefix="/ws")
