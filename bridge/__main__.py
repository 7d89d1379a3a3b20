import argparse
import sys

from walletrpc.supervisor import NETWORK_FLAGS


def main() -> int:
    parser = argparse.ArgumentParser(add_help=True)
    parser.add_argument("--host", default=None, help="Listen address (XMR_BRIDGE_HOST).")
    parser.add_argument("--port", default=None, type=int, help="Listen port (XMR_BRIDGE_PORT).")
    parser.add_argument(
        "--wallet-rpc-url",
        default=None,
        help="wallet-rpc JSON-RPC endpoint (XMR_BRIDGE_WALLET_RPC_URL). Ignored with --manage-wallet-rpc.",
    )
    parser.add_argument("--api-key", default=None, help="Shared X-Api-Key (XMR_BRIDGE_KEY).")
    parser.add_argument("--rpc-timeout", default=None, type=float, help="Seconds per wallet-rpc call.")
    parser.add_argument(
        "--manage-wallet-rpc",
        action="store_true",
        default=None,
        help="Install, launch and supervise monero-wallet-rpc before serving.",
    )
    parser.add_argument("--network", choices=sorted(NETWORK_FLAGS), default=None)
    parser.add_argument("--daemon-address", default=None, help="monerod address for the managed wallet-rpc.")
    parser.add_argument("--wallet-rpc-port", default=None, type=int)
    parser.add_argument("--ready-timeout", default=None, type=float)
    args = parser.parse_args()

    from bridge.config import load_config

    config = load_config(
        host=args.host,
        port=args.port,
        wallet_rpc_url=args.wallet_rpc_url,
        api_key=args.api_key,
        rpc_timeout_s=args.rpc_timeout,
        manage_wallet_rpc=args.manage_wallet_rpc,
        supervisor_overrides={
            "network": args.network,
            "daemon_address": args.daemon_address,
            "rpc_bind_port": args.wallet_rpc_port,
            "ready_timeout_s": args.ready_timeout,
        },
    )

    import uvicorn

    from bridge.main import create_app, logger

    app = create_app(config)
    logger.info(
        "xmr-bridge on http://%s:%s -> %s%s",
        config.host,
        config.port,
        config.wallet_rpc_url,
        " (API key required)" if config.auth_enabled else "",
    )
    # A supervisor failure aborts uvicorn's lifespan startup, so nothing is served.
    uvicorn.run(
        app,
        host=config.host,
        port=int(config.port),
        reload=False,
        access_log=False,
        log_level=config.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
