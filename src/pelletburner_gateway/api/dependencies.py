"""FastAPI dependency injection for shared application state."""

from pelletburner_gateway.core.cache import SnapshotStore
from pelletburner_gateway.core.config import Settings
from pelletburner_gateway.protocol.handler import ProtocolHandler
from pelletburner_gateway.transport.connection import UDPSession


class AppState:
    """Holds shared application state instances.

    Created during app startup and accessed via FastAPI dependencies.
    """

    def __init__(self) -> None:
        self.settings: Settings | None = None
        self.session: UDPSession | None = None
        self.store: SnapshotStore | None = None
        self.handler: ProtocolHandler | None = None


# Global app state singleton
app_state = AppState()


def get_store() -> SnapshotStore:
    """Get the snapshot store instance."""
    assert app_state.store is not None, "App not initialized"
    return app_state.store


def get_handler() -> ProtocolHandler:
    """Get the protocol handler instance."""
    assert app_state.handler is not None, "App not initialized"
    return app_state.handler


def get_settings() -> Settings:
    """Get the settings instance."""
    assert app_state.settings is not None, "App not initialized"
    return app_state.settings
