from fastapi import APIRouter

from nomadconnect.api.routes import chat_requests
from nomadconnect.api.routes import compatibility
from nomadconnect.api.routes import radar
from nomadconnect.api.routes import swipes
from nomadconnect.api.routes import usage

api_router = APIRouter(prefix="/v1")

api_router.include_router(radar.router, prefix="/radar", tags=["radar"])
api_router.include_router(swipes.router, tags=["swipes"])
api_router.include_router(chat_requests.router, prefix="/chat-requests", tags=["chat-requests"])
api_router.include_router(usage.router, prefix="/usage", tags=["usage"])
api_router.include_router(compatibility.router, prefix="/compatibility", tags=["compatibility"])
