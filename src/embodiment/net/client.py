# world client factory
# src/embodiment/net/client.py
"""
Factory for WorldClient implementations.

WorldSession never constructs a transport itself; it receives a
ClientFactory, and the runtime passes create_world_client bound to the
loaded connection config.
"""

from __future__ import annotations

from typing import Callable

from env.schema import ConnectionConfig
from interfaces.world import WorldClient

from .bridge import BridgeClient, BridgeConfig

ClientFactory = Callable[[], WorldClient]


def create_world_client(config: ConnectionConfig) -> WorldClient:
    """
    Construct the WorldClient for a connection config.

    Supported transports:
      - "bridge": JSON-lines TCP bridge (net.bridge.BridgeClient)
    """
    transport = config.transport

    if transport == "bridge":
        return BridgeClient(
            BridgeConfig(
                host=config.bridge_host,
                port=config.bridge_port,
                connect_timeout_s=config.connect_timeout_s,
            )
        )
    raise ValueError(f"Unknown transport in connection config: {transport!r}")


def client_factory_for(config: ConnectionConfig) -> ClientFactory:
    return lambda: create_world_client(config)


__all__ = ["ClientFactory", "create_world_client", "client_factory_for"]
