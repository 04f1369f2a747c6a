"""Aggregate API routers."""

from fastapi import APIRouter

from .accounts import router as accounts_router
from .auth import router as auth_router
from .publish import router as publish_router
from .system import router as system_router

ALL_ROUTERS: tuple[APIRouter, ...] = (
    system_router,
    auth_router,
    accounts_router,
    publish_router,
)

__all__ = ["ALL_ROUTERS"]
