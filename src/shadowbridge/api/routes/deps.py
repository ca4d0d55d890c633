"""Shared route dependencies."""

from fastapi import Request

from shadowbridge.config import Settings
from shadowbridge.services import RelayServices


def get_services(request: Request) -> RelayServices:
    return request.app.state.services


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings
