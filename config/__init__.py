"""Configuration package for the interview evaluation services."""
from .legacy import AppConfig, LlmRoute, load_config, load_route, route_for
from .registry import SCORER_KEY, TRANSCRIBER_KEY, bind_model, get_model, unbind_model
from .settings import Settings, settings

__all__ = [
    "AppConfig",
    "LlmRoute",
    "load_config",
    "load_route",
    "route_for",
    "SCORER_KEY",
    "TRANSCRIBER_KEY",
    "bind_model",
    "get_model",
    "unbind_model",
    "Settings",
    "settings",
]
