from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping, Optional

from walletrpc.supervisor import NETWORK_FLAGS, SupervisorConfig, default_install_dir

_TRUTHY = {"1", "true", "TRUE", "yes", "YES", "on", "ON"}

DEFAULT_WALLET_RPC_URL = "http://127.0.0.1:18083/json_rpc"
DEFAULT_LOG_FILE = "logs/xmr-bridge.log"


@dataclass(frozen=True)
class BridgeConfig:
    host: str = "127.0.0.1"
    port: int = 8787
    wallet_rpc_url: str = DEFAULT_WALLET_RPC_URL
    # Empty disables the X-Api-Key gate.
    api_key: str = ""
    rpc_timeout_s: float = 30.0
    manage_wallet_rpc: bool = False
    supervisor: Optional[SupervisorConfig] = None
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.wallet_rpc_url:
            raise ValueError("wallet_rpc_url is required")
        if not 0 < int(self.port) < 65536:
            raise ValueError(f"port out of range: {self.port}")
        if float(self.rpc_timeout_s) <= 0:
            raise ValueError("rpc_timeout_s must be > 0")
        if self.manage_wallet_rpc and self.supervisor is None:
            raise ValueError("manage_wallet_rpc requires a supervisor config")

    @property
    def auth_enabled(self) -> bool:
        return bool(self.api_key)


def _first_env(env: Mapping[str, str], *names: str) -> Optional[str]:
    for name in names:
        raw = env.get(name)
        if raw is not None and raw.strip():
            return raw.strip()
    return None


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = _first_env(env, name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = _first_env(env, name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def _drop_none(overrides: Mapping[str, Any]) -> dict:
    return {k: v for k, v in overrides.items() if v is not None}


def supervisor_config_from_env(environ: Optional[Mapping[str, str]] = None, **overrides: Any) -> SupervisorConfig:
    env = os.environ if environ is None else environ

    network = (_first_env(env, "XMR_BRIDGE_NETWORK") or "stagenet").lower()
    if network not in NETWORK_FLAGS:
        raise ValueError(f"XMR_BRIDGE_NETWORK must be one of {sorted(NETWORK_FLAGS)}, got {network!r}")

    install_dir = _first_env(env, "XMR_BRIDGE_HOME")
    bundled = _first_env(env, "XMR_BRIDGE_WALLET_RPC_BIN")
    values = {
        "install_dir": Path(install_dir).expanduser() if install_dir else default_install_dir(),
        "bundled_binary": Path(bundled).expanduser() if bundled else None,
        "network": network,
        "daemon_address": _first_env(env, "XMR_BRIDGE_DAEMON_URL", "BITCHAT_DAEMON_URL")
        or "http://127.0.0.1:38081",
        "trusted_daemon": (_first_env(env, "XMR_BRIDGE_TRUSTED_DAEMON") or "1") in _TRUTHY,
        "rpc_bind_ip": _first_env(env, "XMR_BRIDGE_WALLET_RPC_BIND_IP") or "127.0.0.1",
        "rpc_bind_port": _env_int(env, "XMR_BRIDGE_WALLET_RPC_PORT", 18083),
        "wallet_name": _first_env(env, "XMR_BRIDGE_WALLET_NAME") or "demo",
        "wallet_password": env.get("XMR_BRIDGE_WALLET_PASSWORD", ""),
        "log_level": _env_int(env, "XMR_BRIDGE_WALLET_RPC_LOG_LEVEL", 1),
        "ready_poll_interval_s": _env_float(env, "XMR_BRIDGE_READY_INTERVAL", 0.5),
        "ready_timeout_s": _env_float(env, "XMR_BRIDGE_READY_TIMEOUT", 30.0),
    }

    cleaned = _drop_none(overrides)
    for key in ("install_dir", "bundled_binary"):
        if key in cleaned:
            cleaned[key] = Path(cleaned[key]).expanduser()
    values.update(cleaned)
    return SupervisorConfig(**values)


def load_config(environ: Optional[Mapping[str, str]] = None, **overrides: Any) -> BridgeConfig:
    """
    Build a BridgeConfig from the environment.

    Keyword overrides (e.g. parsed CLI flags) win over the environment; None
    means "not given". In self-managed mode the wallet-rpc URL is derived from
    the supervisor's bind address.
    """
    env = os.environ if environ is None else environ

    manage = (_first_env(env, "XMR_BRIDGE_MANAGE_WALLET_RPC") or "") in _TRUTHY
    if overrides.get("manage_wallet_rpc") is not None:
        manage = bool(overrides["manage_wallet_rpc"])

    log_file = env.get("XMR_BRIDGE_LOG_FILE", DEFAULT_LOG_FILE).strip() or None

    config = BridgeConfig(
        host=_first_env(env, "XMR_BRIDGE_HOST", "HOST") or "127.0.0.1",
        port=_env_int(env, "XMR_BRIDGE_PORT", 8787),
        wallet_rpc_url=_first_env(env, "XMR_BRIDGE_WALLET_RPC_URL", "WALLET_RPC_URL", "WALLET_RPC")
        or DEFAULT_WALLET_RPC_URL,
        api_key=env.get("XMR_BRIDGE_KEY", ""),
        rpc_timeout_s=_env_float(env, "XMR_BRIDGE_RPC_TIMEOUT", 30.0),
        log_level=(_first_env(env, "XMR_BRIDGE_LOG_LEVEL", "LOG_LEVEL") or "INFO").upper(),
        log_file=log_file,
    )

    supervisor_overrides = overrides.pop("supervisor_overrides", None) or {}
    cleaned = _drop_none({k: v for k, v in overrides.items() if k != "manage_wallet_rpc"})
    if cleaned:
        config = replace(config, **cleaned)

    if manage:
        supervisor = supervisor_config_from_env(env, **supervisor_overrides)
        config = replace(
            config,
            manage_wallet_rpc=True,
            supervisor=supervisor,
            wallet_rpc_url=supervisor.rpc_url,
        )
    return config
