# pointcloud_relay/api/routes/__init__.py
from fastapi import APIRouter

from .rest import router as rest_router
from .rpc import router as rpc_router
from .ws import router as ws_router

router = APIRouter()

router.include_router(rest_router)
router.include_router(rpc_router)
router.include_router(ws_router)
