from fastapi import APIRouter

from kitconsole.plugins.router import MANAGE_PREFIX
from kitconsole.plugins.router import router as plugins_router
from kitconsole.templates.router import router as templates_router

api_router = APIRouter()
api_router.include_router(plugins_router, prefix=MANAGE_PREFIX, tags=["plugins"])
api_router.include_router(templates_router, prefix=MANAGE_PREFIX, tags=["templates"])
