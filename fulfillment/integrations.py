"""
Outbound integrations the order actions call into.

Each client takes an idempotency key and must not repeat an effect it has
already performed for that key. The in-memory clients record calls for
inspection and can be switched into a failing mode for tests and demos.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from procflow.core import ActionExecutionError, new_id


class IntegrationError(ActionExecutionError):
    """An outbound call failed."""

    code = "INTEGRATION_FAILED"


class EmailSender(ABC):
    @abstractmethod
    def send(self, to: str, template: str, data: Dict[str, Any], idempotency_key: str) -> str:
        """Send one email. Returns the provider message id."""
        ...


class PaymentGateway(ABC):
    @abstractmethod
    def refund(self, reference: Optional[str], amount: Decimal, currency: str, idempotency_key: str) -> str:
        """Refund a captured payment. Returns the refund id."""
        ...


class CourierClient(ABC):
    @abstractmethod
    def request_pickup(
        self, order_id: str, package_count: int, address: Optional[str], idempotency_key: str
    ) -> str:
        """Book a pickup. Returns the courier's pickup id."""
        ...


class _Recording:
    """Idempotent call log with a switchable fault."""

    def __init__(self, code: str) -> None:
        self.code = code
        self.calls: List[Dict[str, Any]] = []
        self._results: Dict[str, str] = {}
        self._fault: Optional[str] = None
        self._lock = threading.Lock()

    def fail_with(self, message: str) -> None:
        self._fault = message

    def heal(self) -> None:
        self._fault = None

    def _perform(self, idempotency_key: str, call: Dict[str, Any]) -> str:
        with self._lock:
            if self._fault is not None:
                raise IntegrationError(self._fault, code=self.code)
            if idempotency_key in self._results:
                return self._results[idempotency_key]
            result = new_id()
            self._results[idempotency_key] = result
            self.calls.append(dict(call, key=idempotency_key, result=result))
            return result


class InMemoryEmailSender(_Recording, EmailSender):
    def __init__(self) -> None:
        super().__init__("EMAIL_FAILED")

    def send(self, to: str, template: str, data: Dict[str, Any], idempotency_key: str) -> str:
        return self._perform(idempotency_key, {"to": to, "template": template, "data": dict(data)})

    def sent(self, template: Optional[str] = None) -> List[Dict[str, Any]]:
        return [c for c in self.calls if template is None or c["template"] == template]


class InMemoryPaymentGateway(_Recording, PaymentGateway):
    def __init__(self) -> None:
        super().__init__("REFUND_FAILED")

    def refund(self, reference: Optional[str], amount: Decimal, currency: str, idempotency_key: str) -> str:
        return self._perform(
            idempotency_key, {"reference": reference, "amount": amount, "currency": currency}
        )


class InMemoryCourierClient(_Recording, CourierClient):
    def __init__(self) -> None:
        super().__init__("PICKUP_FAILED")

    def request_pickup(
        self, order_id: str, package_count: int, address: Optional[str], idempotency_key: str
    ) -> str:
        return self._perform(
            idempotency_key, {"order_id": order_id, "package_count": package_count, "address": address}
        )


@dataclass
class Integrations:
    email: EmailSender = field(default_factory=InMemoryEmailSender)
    payments: PaymentGateway = field(default_factory=InMemoryPaymentGateway)
    courier: CourierClient = field(default_factory=InMemoryCourierClient)
