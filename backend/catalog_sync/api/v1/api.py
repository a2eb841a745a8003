from fastapi import APIRouter

from catalog_sync.api.v1.endpoints import monitor, pricing, supplier, sync

api_router = APIRouter()
api_router.include_router(monitor.router, prefix="/monitor", tags=["monitor"])
api_router.include_router(sync.router, prefix="/sync", tags=["sync"])
api_router.include_router(pricing.router, prefix="/pricing", tags=["pricing"])
api_router.include_router(supplier.router, prefix="/supplier", tags=["supplier"])
