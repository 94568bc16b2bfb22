from fastapi import APIRouter

from classmate.api.api_v1.endpoints import (
    attendance,
    auth,
    branches,
    dashboard,
    debts,
    discounts,
    export,
    groups,
    leads,
    lessons,
    notifications,
    payments,
    roles,
    rooms,
    settings,
    students,
    subscriptions,
    tariffs,
    teachers,
)

api_router = APIRouter()


# Health check endpoint for the API
@api_router.get("/health")
async def api_health_check():
    return {"status": "healthy", "api_version": "v1"}


# Include all endpoint routers
api_router.include_router(auth.router, prefix="/auth", tags=["authentication"])
api_router.include_router(roles.router, tags=["roles"])
api_router.include_router(branches.router, prefix="/branches", tags=["branches"])
api_router.include_router(teachers.router, prefix="/teachers", tags=["teachers"])
api_router.include_router(rooms.router, prefix="/rooms", tags=["rooms"])
api_router.include_router(students.router, prefix="/students", tags=["students"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
api_router.include_router(groups.router, prefix="/groups", tags=["groups"])
api_router.include_router(lessons.router, prefix="/lessons", tags=["lessons"])
api_router.include_router(attendance.router, prefix="/attendance", tags=["attendance"])
api_router.include_router(subscriptions.router, prefix="/subscriptions", tags=["subscriptions"])
api_router.include_router(payments.router, prefix="/payments", tags=["payments"])
api_router.include_router(tariffs.router, prefix="/tariffs", tags=["tariffs"])
api_router.include_router(debts.router, prefix="/debts", tags=["debts"])
api_router.include_router(discounts.router, prefix="/discounts", tags=["discounts"])
api_router.include_router(leads.router, prefix="/leads", tags=["leads"])
api_router.include_router(settings.router, prefix="/settings", tags=["settings"])
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
api_router.include_router(export.router, prefix="/export", tags=["export"])
