"""Runtime engine exports."""

from .commands import CommandError, RuntimeCommandDispatcher
from .loop import RuntimeBootstrap, RuntimeEngine

__all__ = ["CommandError", "RuntimeBootstrap", "RuntimeCommandDispatcher", "RuntimeEngine"]
