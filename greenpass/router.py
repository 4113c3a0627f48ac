"""Central API router aggregating all domain routers."""

from fastapi import APIRouter

from greenpass.account.router import router as account_router
from greenpass.auth.router import router as auth_router
from greenpass.health.router import router as health_router
from greenpass.onboarding.router import router as onboarding_router

api_router = APIRouter()

api_router.include_router(health_router)
api_router.include_router(auth_router)
api_router.include_router(onboarding_router)
api_router.include_router(account_router)
