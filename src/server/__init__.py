"""UI server module for the web UI, websocket events and UI commands."""

from .config import ServerConfigurationError, UIServerConfig
from .service import CommandHandler, UIServer, decode_command

__all__ = [
    "CommandHandler",
    "ServerConfigurationError",
    "UIServerConfig",
    "UIServer",
    "decode_command",
]
