"""
Main API router aggregator
"""
from fastapi import APIRouter

from resolve.api.v1.endpoints import (
    admin,
    applications,
    auth,
    cases,
    contracts,
    documents,
    health,
    insights,
    notifications,
    payments,
    subscription,
    timeline,
)

api_router = APIRouter()

# Include routers
api_router.include_router(health.router, prefix="/health", tags=["Health"])
api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(applications.router, prefix="/applications", tags=["Applications"])
api_router.include_router(payments.router, prefix="/payments", tags=["Payments"])
api_router.include_router(cases.router, prefix="/cases", tags=["Cases"])
api_router.include_router(documents.router, prefix="/documents", tags=["Documents"])
api_router.include_router(documents.generated_router, prefix="/generated-documents", tags=["Documents"])
api_router.include_router(contracts.router, prefix="/contracts", tags=["Contracts"])
api_router.include_router(timeline.router, prefix="/timeline", tags=["Timeline"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
api_router.include_router(subscription.router, prefix="/subscription", tags=["Subscription"])
api_router.include_router(insights.router, prefix="/insights", tags=["Insights"])
api_router.include_router(admin.router, prefix="/admin", tags=["Admin"])
