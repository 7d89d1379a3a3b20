from __future__ import annotations

import enum
import logging
import os
import shutil
import signal
import stat
import subprocess
import sys
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

import requests

from walletrpc.client import build_envelope
from walletrpc.errors import InstallError, LaunchError, ReadinessTimeoutError

logger = logging.getLogger(__name__)

WALLET_RPC_BINARY = "monero-wallet-rpc"

NETWORK_FLAGS = {
    "mainnet": None,
    "testnet": "--testnet",
    "stagenet": "--stagenet",
}


def resource_path(relative_path: str) -> Path:
    """Locate a bundled resource, both from a source checkout and a PyInstaller build."""
    if getattr(sys, "frozen", False):
        base_path = Path(getattr(sys, "_MEIPASS"))
    else:
        base_path = Path(__file__).parent
    return base_path / relative_path


def default_install_dir() -> Path:
    return Path.home() / ".xmr-bridge"


class SupervisorState(str, enum.Enum):
    NOT_STARTED = "not_started"
    INSTALLING = "installing"
    LAUNCHING = "launching"
    POLLING_READY = "polling_ready"
    READY = "ready"
    STOPPED = "stopped"
    FAILED = "failed"


@dataclass(frozen=True)
class SupervisorConfig:
    install_dir: Path = field(default_factory=default_install_dir)
    bundled_binary: Optional[Path] = None
    network: str = "stagenet"
    daemon_address: str = "http://127.0.0.1:38081"
    trusted_daemon: bool = True
    rpc_bind_ip: str = "127.0.0.1"
    rpc_bind_port: int = 18083
    wallet_name: str = "demo"
    wallet_password: str = ""
    log_level: int = 1
    ready_poll_interval_s: float = 0.5
    ready_timeout_s: float = 30.0
    extra_args: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.network not in NETWORK_FLAGS:
            raise ValueError(f"network must be one of {sorted(NETWORK_FLAGS)}, got {self.network!r}")
        if not 0 < int(self.rpc_bind_port) < 65536:
            raise ValueError(f"rpc_bind_port out of range: {self.rpc_bind_port}")
        if float(self.ready_poll_interval_s) <= 0:
            raise ValueError("ready_poll_interval_s must be > 0")
        if float(self.ready_timeout_s) <= 0:
            raise ValueError("ready_timeout_s must be > 0")

    @property
    def bin_dir(self) -> Path:
        return Path(self.install_dir) / "bin"

    @property
    def wallets_dir(self) -> Path:
        return Path(self.install_dir) / "wallets"

    @property
    def logs_dir(self) -> Path:
        return Path(self.install_dir) / "logs"

    @property
    def binary_path(self) -> Path:
        return self.bin_dir / WALLET_RPC_BINARY

    @property
    def wallet_path(self) -> Path:
        return self.wallets_dir / self.wallet_name

    @property
    def log_path(self) -> Path:
        return self.logs_dir / "wallet-rpc.log"

    @property
    def rpc_url(self) -> str:
        return f"http://{self.rpc_bind_ip}:{int(self.rpc_bind_port)}/json_rpc"


def build_command(config: SupervisorConfig) -> list[str]:
    cmd = [str(config.binary_path)]
    flag = NETWORK_FLAGS[config.network]
    if flag:
        cmd.append(flag)
    cmd.extend(["--daemon-address", str(config.daemon_address)])
    if config.trusted_daemon:
        cmd.append("--trusted-daemon")
    cmd.extend(
        [
            "--rpc-bind-ip",
            str(config.rpc_bind_ip),
            "--rpc-bind-port",
            str(int(config.rpc_bind_port)),
            "--disable-rpc-login",
            "--wallet-file",
            str(config.wallet_path),
            "--password",
            str(config.wallet_password),
            "--log-level",
            str(int(config.log_level)),
        ]
    )
    cmd.extend(str(a) for a in config.extra_args)
    return cmd


def probe_json_rpc(url: str, timeout_s: float) -> bool:
    """True when `url` answers get_version with a JSON-RPC result."""
    try:
        r = requests.post(url, json=build_envelope("get_version", request_id=0), timeout=timeout_s)
        if not 200 <= r.status_code < 300:
            return False
        body = r.json()
    except (requests.exceptions.RequestException, ValueError):
        return False
    return isinstance(body, dict) and "result" in body


def terminate_process(proc: Optional[subprocess.Popen], *, timeout_s: float = 5.0) -> None:
    if proc is None or proc.poll() is not None:
        return

    try:
        if os.name == "posix":
            try:
                os.killpg(int(proc.pid), signal.SIGTERM)
            except OSError:
                proc.terminate()
        else:
            proc.terminate()
    except OSError:
        logger.debug("wallet-rpc pid=%s already gone", proc.pid)
        return

    try:
        proc.wait(timeout=max(0.1, float(timeout_s)))
        return
    except subprocess.TimeoutExpired:
        logger.warning("wallet-rpc pid=%s ignored SIGTERM for %.1fs; killing", proc.pid, timeout_s)

    try:
        proc.kill()
    except OSError:
        pass
    try:
        proc.wait(timeout=max(0.1, float(timeout_s)))
    except subprocess.TimeoutExpired:
        logger.error("wallet-rpc pid=%s did not exit after SIGKILL", proc.pid)


class WalletRpcSupervisor:
    """
    Owns at most one monero-wallet-rpc child process.

    `start_if_needed()` runs install -> launch -> readiness poll under a lock,
    so concurrent callers never spawn a second process: they wait for the
    in-flight start and then see READY. A FAILED or STOPPED supervisor may be
    started again.
    """

    def __init__(
        self,
        config: SupervisorConfig,
        *,
        probe: Optional[Callable[[str, float], bool]] = None,
        terminate_timeout_s: float = 5.0,
    ):
        self.config = config
        self._probe = probe or probe_json_rpc
        self._terminate_timeout_s = float(terminate_timeout_s)
        self._lock = threading.Lock()
        self._process: Optional[subprocess.Popen] = None
        self._state = SupervisorState.NOT_STARTED
        self._last_error: Optional[str] = None
        self._ready_at: Optional[float] = None

    @property
    def state(self) -> SupervisorState:
        return self._state

    @property
    def port(self) -> int:
        return int(self.config.rpc_bind_port)

    @property
    def rpc_url(self) -> str:
        return self.config.rpc_url

    @property
    def pid(self) -> Optional[int]:
        proc = self._process
        return int(proc.pid) if proc is not None else None

    def is_running(self) -> bool:
        proc = self._process
        return proc is not None and proc.poll() is None

    def snapshot(self) -> Dict[str, Any]:
        return {
            "state": self._state.value,
            "pid": self.pid,
            "port": self.port,
            "rpc_url": self.rpc_url,
            "log_path": str(self.config.log_path),
            "ready_at": self._ready_at,
            "last_error": self._last_error,
        }

    def start_if_needed(self) -> int:
        with self._lock:
            if self._state == SupervisorState.READY and self.is_running():
                return self.port
            if self._process is not None:
                logger.warning(
                    "wallet-rpc pid=%s exited (code=%s); relaunching",
                    self._process.pid,
                    self._process.poll(),
                )
                self._process = None

            try:
                self._state = SupervisorState.INSTALLING
                self._ensure_installed()

                self._state = SupervisorState.LAUNCHING
                self._launch()

                self._state = SupervisorState.POLLING_READY
                self._wait_ready()
            except Exception as e:
                self._state = SupervisorState.FAILED
                self._last_error = f"{type(e).__name__}: {e}"
                terminate_process(self._process, timeout_s=self._terminate_timeout_s)
                self._process = None
                raise

            self._state = SupervisorState.READY
            self._ready_at = time.time()
            self._last_error = None
            logger.info("wallet-rpc ready pid=%s url=%s", self.pid, self.rpc_url)
            return self.port

    def stop(self) -> None:
        with self._lock:
            proc = self._process
            self._process = None
            if proc is None:
                return
            logger.info("Stopping wallet-rpc pid=%s", proc.pid)
            terminate_process(proc, timeout_s=self._terminate_timeout_s)
            self._state = SupervisorState.STOPPED

    def _locate_bundled_binary(self) -> Optional[Path]:
        candidates = []
        if self.config.bundled_binary:
            candidates.append(Path(self.config.bundled_binary).expanduser())
        candidates.append(resource_path(f"resources/{WALLET_RPC_BINARY}"))
        for c in candidates:
            if c.is_file():
                return c
        return None

    def _ensure_installed(self) -> None:
        cfg = self.config
        try:
            for d in (cfg.bin_dir, cfg.wallets_dir, cfg.logs_dir):
                d.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise InstallError(f"cannot create install directories under {cfg.install_dir}: {e}") from e

        dst = cfg.binary_path
        if dst.exists():
            return

        src = self._locate_bundled_binary()
        if src is None:
            raise InstallError(f"bundled {WALLET_RPC_BINARY} not found (set XMR_BRIDGE_WALLET_RPC_BIN)")
        try:
            shutil.copy2(src, dst)
            mode = os.stat(dst).st_mode
            os.chmod(dst, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        except OSError as e:
            raise InstallError(f"failed to install {src} -> {dst}: {e}") from e
        logger.info("Installed %s -> %s", src, dst)

    def _launch(self) -> None:
        cfg = self.config
        cmd = build_command(cfg)
        logger.info(
            "Launching wallet-rpc network=%s port=%s daemon=%s log=%s",
            cfg.network,
            cfg.rpc_bind_port,
            cfg.daemon_address,
            cfg.log_path,
        )
        try:
            with open(cfg.log_path, "ab") as log_file:
                self._process = subprocess.Popen(
                    cmd,
                    stdin=subprocess.DEVNULL,
                    stdout=log_file,
                    stderr=subprocess.STDOUT,
                    env=os.environ.copy(),
                    start_new_session=True,
                )
        except OSError as e:
            raise LaunchError(f"failed to launch {cmd[0]}: {e}") from e
        logger.debug("wallet-rpc started pid=%s", self._process.pid)

    def _wait_ready(self) -> None:
        cfg = self.config
        interval = float(cfg.ready_poll_interval_s)
        deadline = time.monotonic() + float(cfg.ready_timeout_s)
        while True:
            if self._probe(cfg.rpc_url, interval):
                return
            proc = self._process
            if proc is not None and proc.poll() is not None:
                raise LaunchError(
                    f"wallet-rpc exited with code {proc.returncode} before becoming ready (see {cfg.log_path})"
                )
            if time.monotonic() >= deadline:
                raise ReadinessTimeoutError(cfg.ready_timeout_s, str(cfg.log_path))
            time.sleep(interval)
