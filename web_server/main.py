"""web-server FastAPI application.

Responsibilities:
- Keep each visitor's cart in durable visitor storage (`eventCart` slot).
- Run the checkout / payment-verification flow for signed-in visitors.
- Publish PaymentSubmitted events to Kafka for manual review (optional).
- Proxy catalog and auth requests to api-server.

Visitors are identified by a `visitor_id` cookie; signed-in visitors also
carry the `session_token` cookie issued through api-server.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager
from functools import partial
from threading import Lock
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from . import api_client
from .cart import CartStore
from .checkout import CheckoutFlow, CheckoutState
from .config import (
    CART_STORAGE_DIR,
    FLOW_IDLE_SECONDS,
    KAFKA_ENABLED,
    KAFKA_TOPIC,
    LOG_LEVEL,
    SESSION_COOKIE,
    SIGNIN_PATH,
    VISITOR_COOKIE,
)
from .errors import DomainError, ErrorCode, NotFoundError, TransientNetworkError
from .kafka_producer import create_producer, send_payment_submitted
from .models import (
    AddToCartRequest,
    QuantityRequest,
    SelectMethodRequest,
    SigninRequest,
    SignupRequest,
    SubmitReferenceRequest,
)
from .payment_methods import PAYMENT_METHODS
from .session import current_session
from .storage import visitor_storage

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

# Global producer instance created at startup (None when Kafka is disabled).
producer = None

# Live checkout flows by visitor id. In memory only: a restart drops them.
flows: dict[str, CheckoutFlow] = {}
# Final snapshot of each verified flow, shown once on the next checkout visit.
# Maps visitor id -> (user email, snapshot, monotonic time of verification).
receipts: dict[str, tuple[str, dict, float]] = {}
flows_lock = Lock()

STATUS_BY_CODE = {
    ErrorCode.VALIDATION: 400,
    ErrorCode.AUTH: 401,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.INVALID_TRANSITION: 409,
    ErrorCode.UPSTREAM: 502,
}


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Create the Kafka producer once; close every live checkout on shutdown."""
    global producer
    if KAFKA_ENABLED:
        producer = create_producer()

    yield

    with flows_lock:
        for flow in flows.values():
            flow.close()
        flows.clear()
        receipts.clear()
    if producer is not None:
        producer.flush(5)


app = FastAPI(title="EventHorizon Web Server", lifespan=lifespan)


@app.exception_handler(DomainError)
async def domain_error_handler(_: Request, exc: DomainError) -> JSONResponse:
    content: dict = {"error": exc.code.value, "detail": exc.message}
    if isinstance(exc, TransientNetworkError):
        content["retry"] = True
    return JSONResponse(status_code=STATUS_BY_CODE.get(exc.code, 500), content=content)


# --- helpers -----------------------------------------------------------------


def _visitor_id(request: Request, response: Response) -> str:
    """Return the visitor id, issuing a new cookie when it is missing or bogus."""
    visitor_id = request.cookies.get(VISITOR_COOKIE, "")
    try:
        visitor_id = uuid.UUID(hex=visitor_id).hex
    except ValueError:
        visitor_id = uuid.uuid4().hex
        response.set_cookie(VISITOR_COOKIE, visitor_id, httponly=True, samesite="lax")
    return visitor_id


def _cart(visitor_id: str) -> CartStore:
    return CartStore(visitor_storage(CART_STORAGE_DIR, visitor_id))


def _publisher():
    if producer is None:
        return None
    return partial(send_payment_submitted, producer, KAFKA_TOPIC)


def _signin_redirect() -> RedirectResponse:
    return RedirectResponse(url=f"{SIGNIN_PATH}?callbackUrl=/checkout", status_code=303)


def _flow_verified(visitor_id: str, flow: CheckoutFlow) -> None:
    """Move a verified flow out of the live map, keeping its final view."""
    snapshot = flow.snapshot()
    with flows_lock:
        if flows.get(visitor_id) is flow:
            flows.pop(visitor_id)
        receipts[visitor_id] = (flow.session.email, snapshot, time.monotonic())


def _prune_idle(now: Optional[float] = None) -> None:
    """Drop flows nobody has touched for FLOW_IDLE_SECONDS, and stale receipts.

    Flows that are verifying keep their countdown; they leave the map when
    they verify. Caller must hold `flows_lock`.
    """
    now = time.monotonic() if now is None else now
    for visitor_id, flow in list(flows.items()):
        if flow.state is not CheckoutState.VERIFYING and flow.idle_seconds(now) >= FLOW_IDLE_SECONDS:
            logger.info("Dropping idle checkout %s", flow.attempt_id)
            flow.close()
            flows.pop(visitor_id)
    for visitor_id, (_, _, verified_at) in list(receipts.items()):
        if now - verified_at >= FLOW_IDLE_SECONDS:
            receipts.pop(visitor_id)


def _flow_for(visitor_id: str, request: Request, create: bool = True) -> Optional[CheckoutFlow]:
    """Return the visitor's live flow for the signed-in user.

    A flow left over from a different user is closed and replaced.
    """
    session = current_session(request)
    with flows_lock:
        _prune_idle()
        flow = flows.get(visitor_id)
        if flow is not None and flow.session.email != session.email:
            flow.close()
            flow = None
            flows.pop(visitor_id, None)
        if flow is None and create:
            flow = CheckoutFlow(
                _cart(visitor_id),
                session,
                publisher=_publisher(),
                on_verified=partial(_flow_verified, visitor_id),
            )
            flows[visitor_id] = flow
        if flow is not None:
            flow.touch()
        return flow


def _take_receipt(visitor_id: str, email: str) -> Optional[dict]:
    with flows_lock:
        receipt = receipts.pop(visitor_id, None)
    if receipt is None or receipt[0] != email:
        return None
    return receipt[1]


def _balance_view(request: Request) -> dict:
    """Balance for the checkout header. A failed lookup never blocks checkout."""
    try:
        return {"balance": api_client.get_balance(request.cookies[SESSION_COOKIE]), "balanceError": None}
    except DomainError as e:
        logger.warning("Balance lookup failed: %s", e)
        return {"balance": None, "balanceError": e.message}


# --- routes ------------------------------------------------------------------


@app.get("/health")
def health() -> dict[str, str]:
    """Basic liveness endpoint."""
    return {"status": "ok"}


@app.get("/events")
def get_events(category: Optional[str] = None):
    """Catalog events proxied from api-server. 502 + retry hint on failure."""
    return {"events": api_client.fetch_events(category)}


@app.get("/cart")
def get_cart(request: Request, response: Response):
    return _cart(_visitor_id(request, response)).summary()


@app.post("/cart/items")
def add_to_cart(req: AddToCartRequest, request: Request, response: Response):
    cart = _cart(_visitor_id(request, response))
    cart.add_or_increment(req)
    return cart.summary()


@app.put("/cart/items/{key}")
def update_quantity(key: str, req: QuantityRequest, request: Request, response: Response):
    cart = _cart(_visitor_id(request, response))
    cart.set_quantity(key, req.quantity)
    return cart.summary()


@app.delete("/cart/items/{key}")
def remove_from_cart(key: str, request: Request, response: Response):
    cart = _cart(_visitor_id(request, response))
    cart.remove(key)
    return cart.summary()


@app.post("/auth/signup")
def signup(req: SignupRequest):
    status, body = api_client.signup(req.email, req.password, req.name)
    return JSONResponse(status_code=status, content=body)


@app.post("/auth/signin")
def signin(req: SigninRequest, response: Response, callbackUrl: str = "/"):
    """Sign in through api-server and keep the token in an httponly cookie."""
    result = api_client.signin(req.email, req.password)
    response.set_cookie(SESSION_COOKIE, result["token"], httponly=True, samesite="lax")
    # Only same-site paths are valid return targets.
    if not callbackUrl.startswith("/") or callbackUrl.startswith("//"):
        callbackUrl = "/"
    return {"user": result["user"], "expiresAt": result["expiresAt"], "callbackUrl": callbackUrl}


@app.post("/auth/signout")
def signout(request: Request, response: Response):
    visitor_id = request.cookies.get(VISITOR_COOKIE)
    if visitor_id:
        with flows_lock:
            flow = flows.pop(visitor_id, None)
            receipts.pop(visitor_id, None)
        if flow is not None:
            flow.close()
    response.delete_cookie(SESSION_COOKIE)
    return {"status": "signed_out"}


@app.get("/checkout")
def get_checkout(request: Request, response: Response):
    """Checkout view: order, payment methods, user and flow state.

    A verified flow is reported once and then dropped, so the next visit
    starts a fresh attempt.
    """
    session = current_session(request)
    if session is None:
        return _signin_redirect()

    visitor_id = _visitor_id(request, response)
    snapshot = _take_receipt(visitor_id, session.email)
    if snapshot is None:
        snapshot = _flow_for(visitor_id, request).snapshot()

    return {
        **snapshot,
        "user": {"name": session.name, "email": session.email},
        **_balance_view(request),
        "paymentMethods": [method.model_dump() for method in PAYMENT_METHODS],
    }


@app.post("/checkout/method")
def select_method(req: SelectMethodRequest, request: Request, response: Response):
    if current_session(request) is None:
        return _signin_redirect()

    flow = _flow_for(_visitor_id(request, response), request)
    flow.select_method(req.methodId)
    return flow.snapshot()


@app.post("/checkout/submit")
def submit_payment(req: SubmitReferenceRequest, request: Request, response: Response):
    if current_session(request) is None:
        return _signin_redirect()

    flow = _flow_for(_visitor_id(request, response), request, create=False)
    if flow is None:
        raise NotFoundError("No checkout in progress")
    flow.submit(req.reference)
    return flow.snapshot()


@app.post("/checkout/cancel")
def cancel_verification(request: Request, response: Response):
    if current_session(request) is None:
        return _signin_redirect()

    flow = _flow_for(_visitor_id(request, response), request, create=False)
    if flow is None:
        raise NotFoundError("No checkout in progress")
    flow.cancel()
    return flow.snapshot()
