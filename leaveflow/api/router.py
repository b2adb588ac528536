"""
Main API router
"""
from fastapi import APIRouter

from leaveflow.api.v1 import (
    health,
    version,
    leaves,
    balances,
    policy,
)

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(version.router, tags=["version"])
api_router.include_router(leaves.router, prefix="/leaves", tags=["leaves"])
api_router.include_router(balances.router, prefix="/balances", tags=["balances"])
api_router.include_router(policy.router, prefix="/policy", tags=["policy"])
