"""
API v1 main router
Combines all v1 endpoint routers
"""

from fastapi import APIRouter

from quizcraft.api.v1.endpoints import health, questions, quiz_configs, quizzes, results, sessions

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(questions.router, prefix="/questions", tags=["Questions"])
api_router.include_router(quiz_configs.router, prefix="/quiz-configs", tags=["Quiz Configs"])
api_router.include_router(quizzes.router, prefix="/quizzes", tags=["Quizzes"])
api_router.include_router(results.router, prefix="/results", tags=["Results"])
api_router.include_router(sessions.router, prefix="/sessions", tags=["Quiz Sessions"])
api_router.include_router(health.router, tags=["Health"])
