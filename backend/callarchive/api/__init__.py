# Router aggregator – import each route module here and expose ``api_router``
# for convenient inclusion in the FastAPI app.

from fastapi import APIRouter

from . import routes_calls, routes_static


api_router = APIRouter()
api_router.include_router(routes_calls.router, tags=["calls"])
api_router.include_router(routes_static.router, tags=["static"])
