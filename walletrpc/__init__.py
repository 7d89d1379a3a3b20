"""Thin layer over monero-wallet-rpc.

- `units`: display (XMR) <-> atomic (piconero) conversion.
- `client`: JSON-RPC calls, normalized into the shapes in `types`.
- `supervisor`: installs, launches and readiness-polls the wallet-rpc process.
"""

from walletrpc.client import WalletRpcClient
from walletrpc.errors import (
    InstallError,
    LaunchError,
    ReadinessTimeoutError,
    SupervisorError,
    TransportError,
    UpstreamRpcError,
    WalletRpcError,
)
from walletrpc.supervisor import SupervisorConfig, SupervisorState, WalletRpcSupervisor
from walletrpc.units import ATOMIC_PER_XMR, to_atomic, to_display

__all__ = [
    "ATOMIC_PER_XMR",
    "InstallError",
    "LaunchError",
    "ReadinessTimeoutError",
    "SupervisorConfig",
    "SupervisorError",
    "SupervisorState",
    "TransportError",
    "UpstreamRpcError",
    "WalletRpcClient",
    "WalletRpcError",
    "WalletRpcSupervisor",
    "to_atomic",
    "to_display",
]
