"""
CORS configuration for Quizcraft
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from quizcraft.core.config import settings


def setup_cors(app: FastAPI) -> None:
    """Allow the configured front-end origins"""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
