"""Checkout and payment-verification flow.

States:

    SELECTING_METHOD -> AWAITING_REFERENCE -> VERIFYING -> VERIFIED
                                                  |
                                                  +-- cancel --> SELECTING_METHOD

Verification is manual and happens in the back office. The visitor-facing flow
only waits: once a reference is submitted a countdown starts, and when it
reaches zero the order counts as placed and the cart slot is cleared. There is
no gateway call behind VERIFIED.

The countdown runs on a daemon thread. Every exit path (cancel, verification,
`close()`) stops it so no orphaned timer mutates a flow nobody is looking at.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from datetime import datetime, timezone
from enum import Enum
from functools import partial
from typing import Callable, Optional

from .cart import CartStore
from .config import VERIFICATION_SECONDS
from .errors import AuthError, InvalidTransitionError, ValidationError
from .models import PaymentSubmittedEvent, SessionUser
from .payment_methods import PaymentMethod, get_payment_method, order_reference

logger = logging.getLogger(__name__)

Publisher = Callable[[PaymentSubmittedEvent], None]


class CheckoutState(str, Enum):
    SELECTING_METHOD = "selecting_method"
    AWAITING_REFERENCE = "awaiting_reference"
    VERIFYING = "verifying"
    VERIFIED = "verified"


def format_time(seconds: int) -> str:
    """`MM:SS` for the countdown display."""
    mins, secs = divmod(max(seconds, 0), 60)
    return f"{mins:02d}:{secs:02d}"


class CountdownTimer(threading.Thread):
    """Call `callback` every `interval` seconds until stopped.

    The callback returns False to end the countdown from inside the thread.
    """

    def __init__(self, callback: Callable[[], bool], interval: float = 1.0) -> None:
        super().__init__(daemon=True, name="checkout-countdown")
        self._callback = callback
        self._interval = interval
        self._stop_event = threading.Event()

    def run(self) -> None:
        while not self._stop_event.wait(self._interval):
            if not self._callback():
                break

    def stop(self) -> None:
        self._stop_event.set()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()


class CheckoutFlow:
    """One visitor's payment attempt.

    Args:
        cart: The visitor's cart; cleared when the order is verified.
        session: Signed-in user. Checkout is not reachable without one.
        budget: Countdown length in seconds.
        publisher: Called with a PaymentSubmitted event on submit. Failures are
            logged and do not stop the flow.
        on_verified: Called with the flow once it reaches VERIFIED, after the
            flow's lock is released.
        start_timer: Start a real countdown thread on submit. Tests turn this
            off and drive `tick()` themselves.
        interval: Seconds between ticks of the real countdown.
    """

    def __init__(
        self,
        cart: CartStore,
        session: Optional[SessionUser],
        *,
        budget: int = VERIFICATION_SECONDS,
        publisher: Optional[Publisher] = None,
        on_verified: Optional[Callable[["CheckoutFlow"], None]] = None,
        start_timer: bool = True,
        interval: float = 1.0,
    ) -> None:
        if session is None:
            raise AuthError("Sign in to check out")

        self.attempt_id = str(uuid.uuid4())
        self.session = session
        self.budget = budget
        self.order_reference = order_reference()

        self._cart = cart
        self._publisher = publisher
        self._on_verified = on_verified
        self._start_timer = start_timer
        self._interval = interval
        self._lock = threading.RLock()
        self._timer: CountdownTimer | None = None
        # Bumped whenever a countdown starts or stops; stale ticks are ignored.
        self._generation = 0

        self.state = CheckoutState.SELECTING_METHOD
        self.method: PaymentMethod | None = None
        self.reference = ""
        self.submission_id: str | None = None
        self.time_left = budget
        self.order: dict = cart.summary()
        self.last_active = time.monotonic()

    # --- commands -------------------------------------------------------------

    def select_method(self, method_id: str) -> PaymentMethod:
        """Pick a payment method. Any reference typed so far is discarded."""
        with self._lock:
            if self.state in (CheckoutState.VERIFYING, CheckoutState.VERIFIED):
                raise InvalidTransitionError(self.state.value, "select a payment method")

            self.method = get_payment_method(method_id)
            self.reference = ""
            self.state = CheckoutState.AWAITING_REFERENCE
            return self.method

    def submit(self, reference: str) -> None:
        """Submit the transaction reference and start verification.

        Every submit gets its own `submission_id`, so a reference resubmitted
        after a cancel reaches review as a new entry.
        """
        with self._lock:
            if self.state is not CheckoutState.AWAITING_REFERENCE or self.method is None:
                raise InvalidTransitionError(self.state.value, "submit a payment")

            reference = (reference or "").strip()
            if not reference:
                raise ValidationError("Please enter your transaction ID/reference")

            self._cart.load()
            self.order = self._cart.summary()
            self.reference = reference
            self.submission_id = str(uuid.uuid4())
            self.time_left = self.budget
            self.state = CheckoutState.VERIFYING
            logger.info(
                "Attempt %s verifying: method=%s user=%s total=%.2f",
                self.attempt_id,
                self.method.id,
                self.session.email,
                self.order["total"],
            )

            if self._start_timer:
                self._generation += 1
                self._timer = CountdownTimer(partial(self._timed_tick, self._generation), self._interval)
                self._timer.start()

            event = self._submission_event() if self._publisher is not None else None

        if event is not None:
            self._publish(event)

    def tick(self) -> bool:
        """Advance the countdown by one second.

        Returns True while the countdown should keep running.
        """
        with self._lock:
            running, verified = self._advance()
        if verified:
            self._notify_verified()
        return running

    def cancel(self) -> None:
        """Back to method selection. Countdown and reference are discarded."""
        with self._lock:
            if self.state is not CheckoutState.VERIFYING:
                raise InvalidTransitionError(self.state.value, "cancel verification")

            self._stop_timer()
            self.reference = ""
            self.time_left = self.budget
            self.state = CheckoutState.SELECTING_METHOD
            logger.info("Attempt %s cancelled", self.attempt_id)

    def close(self) -> None:
        """Teardown: stop any running countdown."""
        with self._lock:
            self._stop_timer()

    def touch(self) -> None:
        self.last_active = time.monotonic()

    # --- views ----------------------------------------------------------------

    def idle_seconds(self, now: Optional[float] = None) -> float:
        return (time.monotonic() if now is None else now) - self.last_active

    def progress(self) -> float:
        """Fraction of the verification budget already elapsed."""
        if self.budget <= 0:
            return 1.0
        return (self.budget - self.time_left) / self.budget

    def snapshot(self) -> dict:
        """JSON-ready view. Before submission the order follows the stored cart."""
        with self._lock:
            if self.state in (CheckoutState.SELECTING_METHOD, CheckoutState.AWAITING_REFERENCE):
                self._cart.load()
                self.order = self._cart.summary()
            return {
                "attemptId": self.attempt_id,
                "state": self.state.value,
                "methodId": self.method.id if self.method else None,
                "orderReference": self.order_reference,
                "timeLeft": self.time_left,
                "timeDisplay": format_time(self.time_left),
                "progress": self.progress(),
                "order": self.order,
            }

    # --- internals ------------------------------------------------------------

    def _advance(self) -> tuple[bool, bool]:
        """One countdown step under the lock. Returns (running, just_verified)."""
        if self.state is not CheckoutState.VERIFYING:
            return False, False

        self.time_left = max(self.time_left - 1, 0)
        if self.time_left > 0:
            return True, False

        self.state = CheckoutState.VERIFIED
        self._stop_timer()
        self._cart.clear()
        logger.info("Attempt %s verified; cart cleared", self.attempt_id)
        return False, True

    def _timed_tick(self, generation: int) -> bool:
        with self._lock:
            if generation != self._generation:
                return False
            running, verified = self._advance()
        if verified:
            self._notify_verified()
        return running

    def _stop_timer(self) -> None:
        self._generation += 1
        if self._timer is not None:
            self._timer.stop()
            self._timer = None

    def _notify_verified(self) -> None:
        if self._on_verified is None:
            return
        try:
            self._on_verified(self)
        except Exception:
            logger.exception("Verified callback failed for attempt %s", self.attempt_id)

    def _submission_event(self) -> PaymentSubmittedEvent:
        return PaymentSubmittedEvent(
            eventId=self.submission_id,
            attemptId=self.attempt_id,
            timestamp=datetime.now(timezone.utc).isoformat(),
            userEmail=self.session.email,
            methodId=self.method.id,
            reference=self.reference,
            amount=self.order["total"],
            itemCount=self.order["itemCount"],
        )

    def _publish(self, event: PaymentSubmittedEvent) -> None:
        try:
            self._publisher(event)
        except Exception:
            logger.exception("Failed to publish payment submission %s", event.eventId)
