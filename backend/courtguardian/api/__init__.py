from fastapi import APIRouter
from courtguardian.api.routes import (
    courts,
    discovery,
    jobs,
    verifications,
)

api_router = APIRouter()

api_router.include_router(courts.router)
api_router.include_router(discovery.router)
api_router.include_router(jobs.router)
api_router.include_router(verifications.router)
