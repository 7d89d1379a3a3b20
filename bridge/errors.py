class BridgeError(Exception):
    """Base for errors raised by the bridge layer itself (not the wallet daemon)."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)
