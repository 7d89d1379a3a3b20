from wallet_client.bridge_client import BridgeClient, BridgeRequestError
from wallet_client.intent import PaymentIntent, is_address, parse_payment_intent

__all__ = [
    "BridgeClient",
    "BridgeRequestError",
    "PaymentIntent",
    "is_address",
    "parse_payment_intent",
]
