"""api-server FastAPI application.

Responsibilities:
- Serve the catalog: `GET /events`
- Sign users up and in; issue and read session tokens
- Serve the signed-in user's balance: `GET /user/balance`
- Run the payment-review Kafka consumer in a background thread (optional)
  and let users read back their own submissions: `GET /payments`
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from threading import Event, Thread

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from .accounts import AccountService
from .auth import current_session, issue_token
from .config import KAFKA_ENABLED, LOG_LEVEL
from .errors import AuthError, EmailTakenError, NotFoundError, ValidationError
from .kafka_consumer import run_consumer
from .models import Category, SigninRequest, SigninResponse, SignupRequest
from .mongo import ensure_indexes, get_database, get_payment_reviews, list_events

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

# Used to signal the consumer thread to stop on shutdown.
stop_event = Event()

# Stored so we keep a reference; the thread is daemonized.
consumer_thread: Thread | None = None

# Mongo database handle; set on startup.
db = None


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Connect to MongoDB and start the consumer thread; stop it on shutdown."""
    global consumer_thread, db

    db = get_database()
    ensure_indexes(db)

    if KAFKA_ENABLED:
        stop_event.clear()
        consumer_thread = Thread(
            target=run_consumer,
            args=(db, stop_event),
            daemon=True,  # Daemon threads won't block process exit.
        )
        consumer_thread.start()

    yield

    stop_event.set()


app = FastAPI(title="EventHorizon API Server", lifespan=lifespan)


def accounts() -> AccountService:
    return AccountService(db)


@app.get("/health")
def health() -> dict[str, str]:
    """Basic liveness endpoint."""
    return {"status": "ok"}


@app.get("/events")
def get_events(category: Category | None = None):
    """Return catalog events, sorted by date ascending.

    Query params:
        category: optional, one of concerts/sports/festivals/theater

    An empty catalog is a normal 200 with `{"events": []}`.
    """
    try:
        events = list_events(db, category)
    except Exception as e:
        logger.exception("Failed to fetch events")
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to fetch events", "message": str(e)},
        )
    return {"events": [event.model_dump(mode="json", exclude_none=True) for event in events]}


@app.post("/auth/signup", status_code=201)
def signup(req: SignupRequest):
    """Create an account. 400 when the email is already registered."""
    try:
        account = accounts().create_account(req.email, req.password, req.name)
    except (EmailTakenError, ValidationError) as e:
        return JSONResponse(status_code=400, content={"message": e.message})
    except Exception:
        logger.exception("Signup failed")
        return JSONResponse(status_code=500, content={"message": "Something went wrong"})

    return {"message": "User created successfully", "id": account.id}


@app.post("/auth/signin", response_model=SigninResponse)
def signin(req: SigninRequest):
    """Verify credentials and return a signed session token.

    Unknown email and wrong password get the same 401; only the log line
    says which one it was.
    """
    try:
        user = accounts().authenticate(req.email, req.password)
    except AuthError as e:
        logger.info("Sign-in rejected for %s: %s", req.email, e.kind.value)
        raise HTTPException(status_code=401, detail=e.message)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)

    token, expires_at = issue_token(user)
    return SigninResponse(token=token, expiresAt=expires_at, user=user)


@app.get("/auth/session")
def get_session(request: Request):
    """Return the identity carried by the request's session token."""
    session = current_session(request)
    if session is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return {"user": session.model_dump()}


@app.get("/user/balance")
def get_balance(request: Request):
    """Return the signed-in user's current balance from the account store."""
    session = current_session(request)
    if session is None:
        raise HTTPException(status_code=401, detail="Unauthorized")

    try:
        balance = accounts().get_balance(session.email)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="User not found")
    except Exception:
        logger.exception("Error fetching balance for %s", session.email)
        raise HTTPException(status_code=500, detail="Internal server error")

    return {"balance": balance}


@app.get("/payments")
def get_payments(request: Request, userEmail: str | None = None):
    """Return the signed-in user's submitted payment references, newest first.

    Staff work the `payment_reviews` collection directly; over HTTP a user
    only ever sees their own submissions.
    """
    session = current_session(request)
    if session is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    if userEmail and userEmail.strip().lower() != session.email:
        raise HTTPException(status_code=403, detail="Forbidden")

    docs = get_payment_reviews(db, session.email)
    return {"userEmail": session.email, "reviews": docs}
