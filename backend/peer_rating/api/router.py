from fastapi import APIRouter

from peer_rating.api.routes.admin.router import router as admin_router
from peer_rating.api.routes.ratings import router as ratings_router

api_router = APIRouter()
api_router.include_router(ratings_router)
api_router.include_router(admin_router)


@api_router.get("/healthz")
def healthcheck() -> dict[str, str]:
    return {"status": "ok"}
