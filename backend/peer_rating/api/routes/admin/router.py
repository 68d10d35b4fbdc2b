from fastapi import APIRouter, Depends

from peer_rating.api.deps.admin_auth import require_admin_token
from peer_rating.api.routes.admin.ratings import router as ratings_router

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin_token)])

router.include_router(ratings_router)
