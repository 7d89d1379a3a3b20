from typing import Optional


class WalletRpcError(Exception):
    """Base class for everything raised by the walletrpc package."""


class UpstreamRpcError(WalletRpcError):
    """The wallet daemon answered but rejected the call with a JSON-RPC error object."""

    def __init__(self, code: int, message: str, method: Optional[str] = None):
        self.code = int(code)
        self.message = str(message)
        self.method = method
        super().__init__(f"wallet-rpc error {self.code}: {self.message}")


class TransportError(WalletRpcError):
    """The wallet daemon could not be reached or sent something that is not a JSON-RPC reply."""

    def __init__(self, message: str, *, url: Optional[str] = None, method: Optional[str] = None):
        self.message = str(message)
        self.url = url
        self.method = method
        super().__init__(self.message)


class SupervisorError(WalletRpcError):
    """Startup of the supervised wallet-rpc process failed."""


class InstallError(SupervisorError):
    pass


class LaunchError(SupervisorError):
    pass


class ReadinessTimeoutError(SupervisorError):
    def __init__(self, timeout_s: float, log_path: str):
        self.timeout_s = float(timeout_s)
        self.log_path = str(log_path)
        super().__init__(
            f"wallet-rpc did not become ready within {self.timeout_s:.1f}s (see {self.log_path})"
        )
