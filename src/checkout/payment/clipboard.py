"""Clipboard port, used to share the payment link when scanning is not an option."""

from abc import ABC, abstractmethod

import structlog

from checkout.flow.draft import Notice
from checkout.payment.upi import PaymentRequest

logger = structlog.get_logger(__name__)


class Clipboard(ABC):
    @abstractmethod
    async def copy(self, text: str) -> None: ...


class InMemoryClipboard(Clipboard):
    def __init__(self) -> None:
        self.contents: str | None = None
        self.should_succeed: bool = True

    async def copy(self, text: str) -> None:
        if not self.should_succeed:
            raise PermissionError("Clipboard access denied")
        self.contents = text


async def share_payment_link(clipboard: Clipboard, request: PaymentRequest) -> Notice:
    try:
        await clipboard.copy(request.uri)
    except Exception as exc:
        logger.warning("Could not copy payment link", reference=request.reference, error=str(exc))
        return Notice("warning", "Could not copy the payment link. Please copy it manually.")
    return Notice("success", "Payment link copied to clipboard")
