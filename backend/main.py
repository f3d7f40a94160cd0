from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from typing import Optional
import uvicorn
import logging

import config
config.setup_logging()

from auth import HostGate
from registry import SessionRegistry
from socket_manager import SocketManager

logger = logging.getLogger(__name__)


def _parse_origins(raw: str) -> list:
    return [o.strip() for o in raw.split(",") if o.strip()]


def create_app(settings: Optional[config.Settings] = None,
               registry: Optional[SessionRegistry] = None) -> FastAPI:
    settings = settings or config.Settings()
    manager = SocketManager(
        registry if registry is not None else SessionRegistry(),
        HostGate(settings.host_key),
        surface_state_errors=settings.surface_state_errors,
    )
    origins = _parse_origins(settings.allowed_origins)
    manager.allowed_origins = origins

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting QuizMaster Live backend")
        yield
        manager.reset()
        logger.info("Shutting down QuizMaster Live backend")

    app = FastAPI(title="QuizMaster Live", lifespan=lifespan)
    app.state.socket_manager = manager

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],
        allow_credentials=False,
        allow_methods=["GET"],
        allow_headers=["Content-Type"],
    )

    @app.get("/")
    async def root():
        return {"message": "QuizMaster Live is running"}

    @app.get("/health")
    async def health():
        return {"status": "healthy", "sessions": len(manager.registry)}

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket, host_key: str = ""):
        await manager.connect(websocket, host_key=host_key)

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("main:app", host=config.HOST, port=config.PORT, reload=True)
