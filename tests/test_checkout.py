"""Tests for the checkout / payment-verification state machine."""

from __future__ import annotations

import time
from unittest.mock import MagicMock

import pytest

from web_server.cart import CartStore
from web_server.checkout import CheckoutFlow, CheckoutState, format_time
from web_server.config import CART_STORAGE_KEY
from web_server.errors import AuthError, InvalidTransitionError, ValidationError
from web_server.models import AddToCartRequest, SessionUser
from web_server.storage import MemoryStorage


@pytest.fixture
def filled_cart(cart: CartStore) -> CartStore:
    cart.add_or_increment(AddToCartRequest(eventId="e1", tier="general", quantity=2, price=50, title="Show"))
    return cart


def make_flow(cart: CartStore, session: SessionUser, **kwargs) -> CheckoutFlow:
    kwargs.setdefault("start_timer", False)
    return CheckoutFlow(cart, session, **kwargs)


def wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


# ---------------------------------------------------------------------------
# transitions
# ---------------------------------------------------------------------------


class TestTransitions:
    def test_requires_session(self, cart: CartStore) -> None:
        with pytest.raises(AuthError):
            CheckoutFlow(cart, None)

    def test_starts_selecting_method(self, filled_cart: CartStore, session_user: SessionUser) -> None:
        flow = make_flow(filled_cart, session_user)
        assert flow.state is CheckoutState.SELECTING_METHOD
        assert flow.time_left == 1800

    def test_select_method_awaits_reference(self, filled_cart: CartStore, session_user: SessionUser) -> None:
        flow = make_flow(filled_cart, session_user)
        method = flow.select_method("paypal")

        assert method.name == "PayPal"
        assert flow.state is CheckoutState.AWAITING_REFERENCE

    def test_unknown_method_rejected(self, filled_cart: CartStore, session_user: SessionUser) -> None:
        flow = make_flow(filled_cart, session_user)
        with pytest.raises(ValidationError):
            flow.select_method("bitcoin")
        assert flow.state is CheckoutState.SELECTING_METHOD

    def test_submit_without_method_rejected(self, filled_cart: CartStore, session_user: SessionUser) -> None:
        flow = make_flow(filled_cart, session_user)
        with pytest.raises(InvalidTransitionError):
            flow.submit("TX-1")

    @pytest.mark.parametrize("reference", ["", "   ", None])
    def test_blank_reference_rejected(
        self, filled_cart: CartStore, session_user: SessionUser, reference
    ) -> None:
        flow = make_flow(filled_cart, session_user)
        flow.select_method("bank_transfer")

        with pytest.raises(ValidationError):
            flow.submit(reference)
        assert flow.state is CheckoutState.AWAITING_REFERENCE

    def test_submit_starts_verification(self, filled_cart: CartStore, session_user: SessionUser) -> None:
        flow = make_flow(filled_cart, session_user)
        flow.select_method("bank_transfer")
        flow.submit("  TX-1  ")

        assert flow.state is CheckoutState.VERIFYING
        assert flow.reference == "TX-1"
        assert flow.time_left == 1800
        assert flow.order["total"] == 100

    def test_cannot_reselect_while_verifying(self, filled_cart: CartStore, session_user: SessionUser) -> None:
        flow = make_flow(filled_cart, session_user)
        flow.select_method("upi")
        flow.submit("TX-1")

        with pytest.raises(InvalidTransitionError):
            flow.select_method("paypal")


# ---------------------------------------------------------------------------
# countdown
# ---------------------------------------------------------------------------


class TestCountdown:
    def test_budget_elapses_to_verified_and_clears_cart(
        self, filled_cart: CartStore, storage: MemoryStorage, session_user: SessionUser
    ) -> None:
        flow = make_flow(filled_cart, session_user)
        flow.select_method("gcash")
        flow.submit("TX-1")

        for _ in range(1800):
            flow.tick()

        assert flow.state is CheckoutState.VERIFIED
        assert flow.time_left == 0
        assert storage.get_item(CART_STORAGE_KEY) is None
        # The order summary survives for the confirmation view.
        assert flow.order["itemCount"] == 2

    def test_one_second_short_is_still_verifying(
        self, filled_cart: CartStore, storage: MemoryStorage, session_user: SessionUser
    ) -> None:
        flow = make_flow(filled_cart, session_user)
        flow.select_method("gcash")
        flow.submit("TX-1")

        for _ in range(1799):
            assert flow.tick() is True

        assert flow.state is CheckoutState.VERIFYING
        assert flow.time_left == 1
        assert flow.snapshot()["timeDisplay"] == "00:01"
        assert storage.get_item(CART_STORAGE_KEY) is not None

    def test_verified_is_terminal(self, filled_cart: CartStore, session_user: SessionUser) -> None:
        flow = make_flow(filled_cart, session_user, budget=1)
        flow.select_method("gcash")
        flow.submit("TX-1")
        flow.tick()

        assert flow.tick() is False
        with pytest.raises(InvalidTransitionError):
            flow.cancel()
        with pytest.raises(InvalidTransitionError):
            flow.select_method("paypal")

    def test_cancel_discards_countdown_and_reference(
        self, filled_cart: CartStore, storage: MemoryStorage, session_user: SessionUser
    ) -> None:
        flow = make_flow(filled_cart, session_user)
        flow.select_method("wise")
        flow.submit("TX-1")
        for _ in range(100):
            flow.tick()

        flow.cancel()

        assert flow.state is CheckoutState.SELECTING_METHOD
        assert flow.reference == ""
        assert flow.time_left == 1800
        assert flow.tick() is False
        assert flow.time_left == 1800
        assert storage.get_item(CART_STORAGE_KEY) is not None

    def test_cancel_only_while_verifying(self, filled_cart: CartStore, session_user: SessionUser) -> None:
        flow = make_flow(filled_cart, session_user)
        with pytest.raises(InvalidTransitionError):
            flow.cancel()

    def test_real_timer_auto_verifies(
        self, filled_cart: CartStore, storage: MemoryStorage, session_user: SessionUser
    ) -> None:
        flow = CheckoutFlow(filled_cart, session_user, budget=3, interval=0.01)
        flow.select_method("alipay")
        flow.submit("TX-1")

        assert wait_for(lambda: flow.state is CheckoutState.VERIFIED)
        assert storage.get_item(CART_STORAGE_KEY) is None

    def test_close_stops_timer(self, filled_cart: CartStore, session_user: SessionUser) -> None:
        flow = CheckoutFlow(filled_cart, session_user, budget=10_000, interval=0.01)
        flow.select_method("alipay")
        flow.submit("TX-1")
        assert wait_for(lambda: flow.time_left < 10_000)

        flow.close()
        frozen = flow.time_left
        time.sleep(0.1)

        assert flow.time_left == frozen
        assert flow.state is CheckoutState.VERIFYING

    def test_cancelled_timer_does_not_touch_next_attempt(
        self, filled_cart: CartStore, session_user: SessionUser
    ) -> None:
        flow = CheckoutFlow(filled_cart, session_user, budget=10_000, interval=0.01)
        flow.select_method("alipay")
        flow.submit("TX-1")
        flow.cancel()

        flow.select_method("alipay")
        flow.close()
        time.sleep(0.05)

        assert flow.state is CheckoutState.AWAITING_REFERENCE
        assert flow.time_left == 10_000


# ---------------------------------------------------------------------------
# publishing and views
# ---------------------------------------------------------------------------


class TestPublishing:
    def test_submission_is_published(self, filled_cart: CartStore, session_user: SessionUser) -> None:
        publisher = MagicMock()
        flow = make_flow(filled_cart, session_user, publisher=publisher)
        flow.select_method("bank_transfer")
        flow.submit("TX-42")

        publisher.assert_called_once()
        event = publisher.call_args.args[0]
        assert event.eventId == flow.submission_id
        assert event.attemptId == flow.attempt_id
        assert event.userEmail == "fan@example.com"
        assert event.methodId == "bank_transfer"
        assert event.reference == "TX-42"
        assert event.amount == 100
        assert event.itemCount == 2

    def test_publish_failure_does_not_block(self, filled_cart: CartStore, session_user: SessionUser) -> None:
        publisher = MagicMock(side_effect=RuntimeError("broker down"))
        flow = make_flow(filled_cart, session_user, publisher=publisher)
        flow.select_method("bank_transfer")
        flow.submit("TX-42")

        assert flow.state is CheckoutState.VERIFYING


@pytest.mark.parametrize(
    ("seconds", "expected"),
    [(1800, "30:00"), (65, "01:05"), (0, "00:00"), (-4, "00:00")],
)
def test_format_time(seconds: int, expected: str) -> None:
    assert format_time(seconds) == expected


def test_progress(filled_cart: CartStore, session_user: SessionUser) -> None:
    flow = make_flow(filled_cart, session_user, budget=4)
    flow.select_method("gcash")
    flow.submit("TX-1")
    flow.tick()

    assert flow.progress() == 0.25


class TestResubmission:
    def test_resubmit_after_cancel_gets_new_event_id(
        self, filled_cart: CartStore, session_user: SessionUser
    ) -> None:
        publisher = MagicMock()
        flow = make_flow(filled_cart, session_user, publisher=publisher)
        flow.select_method("bank_transfer")
        flow.submit("REF-FIRST")
        flow.cancel()
        flow.select_method("bank_transfer")
        flow.submit("REF-SECOND")

        first, second = (call.args[0] for call in publisher.call_args_list)
        assert first.eventId != second.eventId
        assert first.attemptId == second.attemptId == flow.attempt_id
        assert [first.reference, second.reference] == ["REF-FIRST", "REF-SECOND"]

    def test_event_is_built_before_a_racing_cancel(
        self, filled_cart: CartStore, session_user: SessionUser
    ) -> None:
        published = []

        def publisher(event) -> None:
            # A cancel lands between the state change and the publish.
            flow.cancel()
            published.append(event)

        flow = make_flow(filled_cart, session_user, publisher=publisher)
        flow.select_method("upi")
        flow.submit("TX-9")

        assert published[0].reference == "TX-9"
        assert published[0].methodId == "upi"
        assert flow.state is CheckoutState.SELECTING_METHOD


class TestOrderView:
    def test_order_follows_cart_before_submit(
        self, cart: CartStore, storage: MemoryStorage, session_user: SessionUser
    ) -> None:
        flow = make_flow(cart, session_user)
        assert flow.snapshot()["order"]["total"] == 0

        CartStore(storage).add_or_increment(
            AddToCartRequest(eventId="e1", tier="general", quantity=2, price=50, title="Show")
        )

        assert flow.snapshot()["order"]["total"] == 100

    def test_order_frozen_while_verifying(
        self, filled_cart: CartStore, storage: MemoryStorage, session_user: SessionUser
    ) -> None:
        flow = make_flow(filled_cart, session_user)
        flow.select_method("gcash")
        flow.submit("TX-1")

        CartStore(storage).clear()

        assert flow.snapshot()["order"]["total"] == 100


class TestVerifiedCallback:
    def test_called_once_on_verification(self, filled_cart: CartStore, session_user: SessionUser) -> None:
        on_verified = MagicMock()
        flow = make_flow(filled_cart, session_user, budget=2, on_verified=on_verified)
        flow.select_method("paypal")
        flow.submit("TX-1")

        flow.tick()
        on_verified.assert_not_called()
        flow.tick()
        flow.tick()

        on_verified.assert_called_once_with(flow)

    def test_callback_runs_from_real_timer(self, filled_cart: CartStore, session_user: SessionUser) -> None:
        on_verified = MagicMock()
        flow = make_flow(
            filled_cart, session_user, budget=2, on_verified=on_verified, start_timer=True, interval=0.01
        )
        flow.select_method("paypal")
        flow.submit("TX-1")

        assert wait_for(lambda: on_verified.called)
