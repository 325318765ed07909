# embodiment.net package
# src/embodiment/net/__init__.py
"""
Transport layer for the embodiment.

- WorldClient protocol lives in interfaces.world
- BridgeClient: JSON-lines TCP client for the world bridge process
- create_world_client: factory wired to env.schema.ConnectionConfig
"""

from __future__ import annotations

from .bridge import BridgeClient, BridgeConfig
from .client import ClientFactory, client_factory_for, create_world_client

__all__ = [
    "BridgeClient",
    "BridgeConfig",
    "ClientFactory",
    "client_factory_for",
    "create_world_client",
]
