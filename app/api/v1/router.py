from fastapi import APIRouter

from app.api.v1.endpoints import (
    commission,
    disputes,
    email_rules,
    emails,
    health,
    opportunities,
)

router = APIRouter(prefix="/api/v1")

router.include_router(email_rules.router)
router.include_router(emails.router)
router.include_router(opportunities.router)
router.include_router(commission.router)
router.include_router(disputes.router)
router.include_router(health.router)
