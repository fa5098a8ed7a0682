"""HTTP surface of the engine."""

from .api import EngineAPI, to_response
from .app import create_app

__all__ = ["EngineAPI", "create_app", "to_response"]
