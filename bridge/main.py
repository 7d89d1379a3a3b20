import logging
import os
import time
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from typing import Any, Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from bridge.auth import API_KEY_HEADER, ApiKeyGate, AuthorizationError
from bridge.config import BridgeConfig
from bridge.schemas import (
    AddressRequest,
    AddressResponse,
    EstimateRequest,
    EstimateResponse,
    HealthResponse,
    ProofRequest,
    ProofResponse,
    TransferRequest,
    TransferResponse,
    TxStatusResponse,
    VerifyRequest,
    VerifyResponse,
)
from bridge.validation import (
    LABEL_MAX_CHARS,
    MESSAGE_MAX_CHARS,
    ValidationError,
    clean_str,
    require_address,
    require_amount,
    require_non_empty,
    require_tx_id,
    truncate,
)
from walletrpc.client import WalletRpcClient
from walletrpc.errors import TransportError, UpstreamRpcError
from walletrpc.supervisor import WalletRpcSupervisor
from walletrpc.units import to_display, to_display_float

_LOGGER_NAMES = ("bridge", "walletrpc")


def setup_logging(level_name: str = "INFO", log_file: Optional[str] = None) -> None:
    """Attach stream (and optional rotating file) handlers to the package loggers, once per process."""
    level = getattr(logging, (level_name or "INFO").upper(), logging.INFO)
    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    for name in _LOGGER_NAMES:
        pkg_logger = logging.getLogger(name)
        if getattr(pkg_logger, "_configured", False):
            continue

        pkg_logger.setLevel(level)
        pkg_logger.propagate = False

        stream_handler = logging.StreamHandler()
        stream_handler.setLevel(level)
        stream_handler.setFormatter(formatter)
        pkg_logger.addHandler(stream_handler)

        if log_file:
            try:
                os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
                file_handler = RotatingFileHandler(
                    log_file,
                    maxBytes=int(os.getenv("XMR_BRIDGE_LOG_MAX_BYTES", str(10 * 1024 * 1024))),
                    backupCount=int(os.getenv("XMR_BRIDGE_LOG_BACKUP_COUNT", "5")),
                )
                file_handler.setLevel(level)
                file_handler.setFormatter(formatter)
                pkg_logger.addHandler(file_handler)
            except OSError:
                pkg_logger.exception("Failed to configure XMR_BRIDGE_LOG_FILE=%r", log_file)

        pkg_logger._configured = True


logger = logging.getLogger(__name__)


def _request_id(request: Request) -> Optional[str]:
    return getattr(getattr(request, "state", None), "request_id", None)


def error_response(request: Request, status_code: int, kind: str, detail: str, **extra: Any) -> JSONResponse:
    content = {"detail": detail, "kind": kind, "request_id": _request_id(request)}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


def get_rpc(request: Request) -> WalletRpcClient:
    return request.app.state.rpc


router = APIRouter()


@router.get("/health", response_model=HealthResponse, response_model_exclude_none=True)
def health(request: Request, rpc: WalletRpcClient = Depends(get_rpc)):
    supervisor: Optional[WalletRpcSupervisor] = request.app.state.supervisor
    snapshot = supervisor.snapshot() if supervisor is not None else None
    try:
        version = rpc.get_version()
    except (UpstreamRpcError, TransportError) as e:
        logger.warning("Health: wallet-rpc check failed: %s", e)
        body = HealthResponse(ok=False, error=str(e), wallet_rpc=snapshot)
        return JSONResponse(status_code=502, content=body.model_dump(exclude_none=True))
    return HealthResponse(ok=True, version=version.version, release=version.release, wallet_rpc=snapshot)


@router.post("/address", response_model=AddressResponse)
def create_address(req: Optional[AddressRequest] = None, rpc: WalletRpcClient = Depends(get_rpc)):
    req = req or AddressRequest()
    label = truncate(req.label, LABEL_MAX_CHARS)
    created = rpc.create_address(label=label, account_index=req.account_index)
    logger.info("Created subaddress account=%s index=%s", created.account_index, created.address_index)
    return AddressResponse(
        address=created.address,
        address_index=created.address_index,
        account_index=created.account_index,
    )


@router.post("/estimate", response_model=EstimateResponse)
def estimate(req: EstimateRequest, rpc: WalletRpcClient = Depends(get_rpc)):
    """Build the transfer without relaying it; returns the fee and the signed tx metadata."""
    address = require_address(req.address)
    amount_atomic = require_amount(req.amount)
    result = rpc.transfer(address, amount_atomic, relay=False)
    return EstimateResponse(fee_xmr=to_display_float(result.fee), tx_metadata=result.tx_metadata)


@router.post("/transfer", response_model=TransferResponse)
def transfer(req: TransferRequest, rpc: WalletRpcClient = Depends(get_rpc)):
    tx_metadata = clean_str(req.tx_metadata)
    if tx_metadata:
        tx_hash = rpc.relay_tx(tx_metadata)
        logger.info("Relayed prebuilt transaction tx=%s", tx_hash[:12])
        return TransferResponse(txid=tx_hash, tx_hash=tx_hash, fee_xmr=None)

    address = require_address(req.address)
    amount_atomic = require_amount(req.amount)
    result = rpc.transfer(address, amount_atomic, relay=True)
    logger.info("Sent transaction tx=%s amount_xmr=%s", result.tx_hash[:12], to_display(amount_atomic))
    return TransferResponse(
        txid=result.tx_hash,
        tx_hash=result.tx_hash,
        fee_xmr=to_display_float(result.fee) if result.fee is not None else None,
    )


@router.get("/tx/{txid}", response_model=TxStatusResponse)
def tx_status(txid: str, request: Request, rpc: WalletRpcClient = Depends(get_rpc)):
    txid = require_tx_id(txid)
    status = rpc.get_transfer_by_txid(txid)
    if status is None:
        return error_response(request, 404, "not_found", "tx not found", txid=txid)
    return TxStatusResponse(
        txid=txid,
        in_pool=status.in_pool,
        confirmations=status.confirmations,
        amount_xmr=to_display_float(status.amount),
        fee_xmr=to_display_float(status.fee),
        timestamp=status.timestamp,
        address=status.address,
    )


@router.post("/proof", response_model=ProofResponse)
def create_proof(req: ProofRequest, rpc: WalletRpcClient = Depends(get_rpc)):
    txid = require_tx_id(req.txid)
    address = require_address(req.address)
    message = truncate(req.message, MESSAGE_MAX_CHARS)
    proof = rpc.get_tx_proof(txid, address, message)
    return ProofResponse(txid=proof.txid, address=proof.address, message=proof.message, signature=proof.signature)


@router.post("/verify", response_model=VerifyResponse)
def verify_proof(req: VerifyRequest, rpc: WalletRpcClient = Depends(get_rpc)):
    txid = require_tx_id(req.txid)
    signature = require_non_empty(req.signature, "signature")
    # The signature covers the exact message, so it is passed through untouched.
    message = "" if req.message is None else str(req.message)
    check = rpc.check_tx_proof(txid, clean_str(req.address), message, signature)
    return VerifyResponse(
        good=check.good,
        in_pool=check.in_pool,
        received_xmr=to_display_float(check.received),
        confirmations=check.confirmations,
    )


def _summarize_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        msg = err.get("msg", "invalid")
        parts.append(f"{loc}: {msg}" if loc else str(msg))
    return "; ".join(parts) or "invalid request"


def create_app(
    config: BridgeConfig,
    *,
    rpc_client: Optional[WalletRpcClient] = None,
    supervisor: Optional[WalletRpcSupervisor] = None,
) -> FastAPI:
    """
    Build the bridge application.

    Everything the handlers need comes from `config` or the injected
    collaborators; there is no module-level state. When the config asks for a
    self-managed wallet-rpc (or a supervisor is passed in), it is started in
    the lifespan before the first request is served and stopped on shutdown.
    """
    setup_logging(config.log_level, config.log_file)

    owns_rpc = rpc_client is None
    rpc = rpc_client or WalletRpcClient(config.wallet_rpc_url, timeout_s=config.rpc_timeout_s)
    if supervisor is None and config.manage_wallet_rpc:
        supervisor = WalletRpcSupervisor(config.supervisor)
    gate = ApiKeyGate(config.api_key)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if supervisor is not None:
            port = await run_in_threadpool(supervisor.start_if_needed)
            logger.info("Self-managed wallet-rpc ready on port %s", port)
        logger.info("xmr-bridge serving; wallet-rpc at %s", rpc.rpc_url)
        try:
            yield
        finally:
            if supervisor is not None:
                await run_in_threadpool(supervisor.stop)
            if owns_rpc:
                rpc.close()

    app = FastAPI(
        title="xmr-bridge",
        description="Local REST bridge to monero-wallet-rpc",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.rpc = rpc
    app.state.supervisor = supervisor
    app.state.gate = gate

    # Registered before the logging middleware so it runs inside it and still sees the request id.
    @app.middleware("http")
    async def api_key_middleware(request: Request, call_next):
        try:
            gate.check(request.headers.get(API_KEY_HEADER))
        except AuthorizationError as e:
            return error_response(request, 401, "unauthorized", e.message)
        return await call_next(request)

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid4())
        request.state.request_id = request_id

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "Unhandled exception method=%s path=%s request_id=%s",
                request.method,
                request.url.path,
                request_id,
            )
            response = JSONResponse(
                status_code=500,
                content={"detail": "Internal Server Error", "kind": "internal", "request_id": request_id},
            )
        duration_ms = (time.perf_counter() - start) * 1000.0

        response.headers["X-Request-ID"] = request_id
        logger.info(
            "HTTP %s %s status=%s ms=%.1f request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            request_id,
        )
        return response

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return error_response(request, 400, "validation", exc.message, field=exc.field)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(request: Request, exc: RequestValidationError):
        return error_response(request, 400, "validation", _summarize_validation_errors(exc))

    @app.exception_handler(UpstreamRpcError)
    async def upstream_error_handler(request: Request, exc: UpstreamRpcError):
        return error_response(request, 502, "upstream", exc.message, code=exc.code, method=exc.method)

    @app.exception_handler(TransportError)
    async def transport_error_handler(request: Request, exc: TransportError):
        logger.error(
            "wallet-rpc transport failure url=%s method=%s request_id=%s: %s",
            exc.url,
            exc.method,
            _request_id(request),
            exc.message,
        )
        return error_response(request, 502, "transport", exc.message, method=exc.method)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(
            "Unhandled exception (handler) method=%s path=%s request_id=%s",
            request.method,
            request.url.path,
            _request_id(request),
        )
        return error_response(request, 500, "internal", "Internal Server Error")

    app.include_router(router)
    return app
