"""Local REST bridge in front of monero-wallet-rpc.

Run with `python -m bridge`; see `bridge.config` for the environment it reads.
"""
