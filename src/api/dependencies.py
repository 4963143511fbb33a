"""
FastAPI dependencies.
Resolve the orchestrator, order store and settings that create_app() put on app.state.
"""
from fastapi import Request

from api.settings_store import SettingsStore
from duplicate_guard.scan_orchestrator import ScanOrchestrator


def get_orchestrator(request: Request) -> ScanOrchestrator:
    return request.app.state.orchestrator


def get_settings_store(request: Request) -> SettingsStore:
    return request.app.state.settings_store


def get_order_store(request: Request):
    return request.app.state.order_store


def get_webhook_secret(request: Request) -> str:
    return request.app.state.webhook_secret
