"""
FastAPI routers.
"""
from app.routers.health import router as health_router
from app.routers.jobs import router as jobs_router
from app.routers.meditations import router as meditations_router
from app.routers.sound_files import router as sound_files_router

__all__ = ['health_router', 'jobs_router', 'meditations_router', 'sound_files_router']
