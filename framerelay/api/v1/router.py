from fastapi import APIRouter

from framerelay.api.v1 import content, proxy

api_router = APIRouter(prefix="/api")

api_router.include_router(content.router, tags=["Content"])
api_router.include_router(proxy.router, prefix="/proxy", tags=["Proxy"])
