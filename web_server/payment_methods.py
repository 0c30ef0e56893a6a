"""Payment method catalog.

Each method carries display instructions whose shape depends on its kind, so
the instructions are a discriminated union keyed by `kind`. None of these
methods call out to a provider: the visitor pays by hand and types the
transaction reference back in at checkout.
"""

from __future__ import annotations

import time
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from .errors import ValidationError


def order_reference(now: float | None = None) -> str:
    """Reference the visitor should quote in their transfer, e.g. EVENT-123456."""
    millis = int((time.time() if now is None else now) * 1000)
    return f"EVENT-{str(millis)[-6:]}"


class BankTransferInstructions(BaseModel):
    kind: Literal["bank_transfer"] = "bank_transfer"
    bankName: str
    accountName: str
    accountNumber: str
    iban: str
    swift: str


class EmailWalletInstructions(BaseModel):
    """Wallets addressed by an email account (PayPal, Wise)."""

    kind: Literal["email_wallet"] = "email_wallet"
    email: str
    accountNumber: Optional[str] = None
    note: Optional[str] = None
    needsReference: bool = False


class QrCodeInstructions(BaseModel):
    kind: Literal["qr_code"] = "qr_code"
    qrCode: str
    account: str
    note: str


class MobileWalletInstructions(BaseModel):
    """Phone-number wallets (GCash, PayMaya)."""

    kind: Literal["mobile_wallet"] = "mobile_wallet"
    number: str
    name: str


class UpiInstructions(BaseModel):
    kind: Literal["upi"] = "upi"
    upiId: str
    name: str
    note: str


Instructions = Annotated[
    Union[
        BankTransferInstructions,
        EmailWalletInstructions,
        QrCodeInstructions,
        MobileWalletInstructions,
        UpiInstructions,
    ],
    Field(discriminator="kind"),
]


class PaymentMethod(BaseModel):
    id: str
    name: str
    icon: str
    description: str
    instructions: Instructions

    @property
    def needs_reference(self) -> bool:
        """Whether the visitor is asked to quote an order reference."""
        return isinstance(
            self.instructions, (BankTransferInstructions, MobileWalletInstructions)
        ) or getattr(self.instructions, "needsReference", False)


PAYMENT_METHODS: tuple[PaymentMethod, ...] = (
    PaymentMethod(
        id="bank_transfer",
        name="Bank Transfer",
        icon="/images/bank.png",
        description="Direct bank transfer to our account",
        instructions=BankTransferInstructions(
            bankName="International Commerce Bank",
            accountName="EventHorizon Tickets Ltd",
            accountNumber="9876543210",
            iban="ICBK0019876543210",
            swift="ICBKUS33",
        ),
    ),
    PaymentMethod(
        id="paypal",
        name="PayPal",
        icon="/images/paypal.png",
        description="Pay with your PayPal account",
        instructions=EmailWalletInstructions(
            email="payments@eventhorizon.com",
            note="Include transaction ID in payment notes",
        ),
    ),
    PaymentMethod(
        id="wise",
        name="Wise Transfer",
        icon="/images/wise.png",
        description="International money transfer",
        instructions=EmailWalletInstructions(
            email="eventhorizon@wise.com",
            accountNumber="US9876543210",
            needsReference=True,
        ),
    ),
    PaymentMethod(
        id="alipay",
        name="Alipay",
        icon="/images/alipay.png",
        description="Popular Chinese payment method",
        instructions=QrCodeInstructions(
            qrCode="/payments/alipay-qr.png",
            account="eventhorizon@alipay.com",
            note="Scan QR code to pay",
        ),
    ),
    PaymentMethod(
        id="wechat",
        name="WeChat Pay",
        icon="/images/wechat.png",
        description="Pay through WeChat app",
        instructions=QrCodeInstructions(
            qrCode="/payments/wechat-qr.png",
            account="EventHorizon-Tickets",
            note="Scan QR code in WeChat app",
        ),
    ),
    PaymentMethod(
        id="gcash",
        name="GCash",
        icon="/images/gcash.png",
        description="Philippines mobile wallet",
        instructions=MobileWalletInstructions(number="+639123456789", name="EventHorizon PH"),
    ),
    PaymentMethod(
        id="paymaya",
        name="PayMaya",
        icon="/images/paymaya.png",
        description="Philippines digital wallet",
        instructions=MobileWalletInstructions(number="+639987654321", name="EventHorizon PH"),
    ),
    PaymentMethod(
        id="upi",
        name="UPI",
        icon="/images/upi.png",
        description="Indian Unified Payments Interface",
        instructions=UpiInstructions(
            upiId="eventhorizon@upi",
            name="EventHorizon India",
            note="Use any UPI app to pay",
        ),
    ),
)


def get_payment_method(method_id: str) -> PaymentMethod:
    """Look up a method by id.

    Raises:
        ValidationError: unknown id.
    """
    for method in PAYMENT_METHODS:
        if method.id == method_id:
            return method
    raise ValidationError(f"Unknown payment method: {method_id}")
