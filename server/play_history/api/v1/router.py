from __future__ import annotations
"""server/play_history/api/v1/router.py
~~~~~~~~~~~~~~~~~~~~~~~~
Router principal API v1.
"""
from fastapi import APIRouter

from play_history.api.v1.endpoints import health, play_events

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(play_events.router, tags=["play-events"])
