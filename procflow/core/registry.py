"""
Handler registry: event type -> build mutation + subscribed actions.

The registry is built once at startup, frozen, and then shared read-only
by every worker. Lookups of unregistered event types return None, which
callers treat as a no-op rather than an error.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Type, Union

from .context import ReplayContext
from .errors import HandlerConfigError
from .events import Event, event_type_name
from .payloads import EventPayload, validate_payload
from .process import Process, ProcessSnapshot

# Mutation signature: (process, event, context) -> None. Pure, no I/O.
Mutation = Callable[[Process, Event, ReplayContext], None]
# Condition signature: (snapshot, event, context) -> bool. Side-effect free.
Condition = Callable[[ProcessSnapshot, Event, ReplayContext], bool]
# Action signature: (snapshot, event, context) -> detail | Failure. May perform I/O.
Action = Callable[[ProcessSnapshot, Event, ReplayContext], Any]

def callable_name(fn: Callable[..., Any]) -> str:
    return getattr(fn, "__name__", None) or fn.__class__.__name__

@dataclass(frozen=True)
class Subscription:
    """An action subscribed to an event type, gated by all of its conditions."""

    name: str
    action: Action
    conditions: Tuple[Condition, ...] = ()

@dataclass(frozen=True)
class Registration:
    event_type: str
    mutate: Mutation
    subscriptions: Tuple[Subscription, ...] = ()
    payload_model: Optional[Type[EventPayload]] = None

    def subscription(self, name: str) -> Optional[Subscription]:
        for sub in self.subscriptions:
            if sub.name == name:
                return sub
        return None

    @property
    def action_names(self) -> List[str]:
        return [sub.name for sub in self.subscriptions]

SubscriptionLike = Union[Subscription, Tuple[Action, Sequence[Condition]], Action]

def _to_subscription(entry: SubscriptionLike) -> Subscription:
    if isinstance(entry, Subscription):
        return entry
    if isinstance(entry, tuple):
        if len(entry) != 2:
            raise HandlerConfigError(f"subscription must be (action, [conditions]), got {entry!r}")
        action, conditions = entry
        return Subscription(name=callable_name(action), action=action, conditions=tuple(conditions))
    if callable(entry):
        return Subscription(name=callable_name(entry), action=entry)
    raise HandlerConfigError(f"not a subscription: {entry!r}")

class HandlerRegistry:
    """
    Registry of build handlers and action subscriptions.

    Usage:
        registry = HandlerRegistry(event_types=OrderEvent)
        registry.register(OrderEvent.PAYMENT_SUCCEEDED, on_payment,
                          [(send_email, [has_email])], payload=PaymentSucceeded)
        registry.freeze()
    """

    def __init__(self, event_types: Optional[Iterable[Any]] = None) -> None:
        self._registrations: Dict[str, Registration] = {}
        self._frozen = False
        self._event_types = (
            tuple(event_type_name(t) for t in event_types) if event_types is not None else None
        )

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def event_types(self) -> Optional[Tuple[str, ...]]:
        return self._event_types

    def register(
        self,
        event_type: Any,
        mutate: Mutation,
        subscriptions: Iterable[SubscriptionLike] = (),
        payload: Optional[Type[EventPayload]] = None,
    ) -> None:
        """
        Register the build mutation and subscriptions for one event type.

        Args:
            event_type: Event type (enum member or string)
            mutate: Pure function (process, event, context) -> None
            subscriptions: Ordered (action, [conditions]) pairs or Subscription objects
            payload: Payload record for the event type

        Raises:
            HandlerConfigError: Registry frozen, type registered twice, type outside
                the enumeration, or duplicate action name on this type
        """
        name = event_type_name(event_type)
        if self._frozen:
            raise HandlerConfigError(f"registry is frozen; cannot register {name}")
        if self._event_types is not None and name not in self._event_types:
            raise HandlerConfigError(f"unknown event type: {name}")
        if name in self._registrations:
            raise HandlerConfigError(f"event type registered twice: {name}")
        if not callable(mutate):
            raise HandlerConfigError(f"mutation for {name} is not callable")

        subs = tuple(_to_subscription(s) for s in subscriptions)
        seen = set()
        for sub in subs:
            if sub.name in seen:
                raise HandlerConfigError(f"action {sub.name} subscribed twice to {name}")
            seen.add(sub.name)

        self._registrations[name] = Registration(
            event_type=name,
            mutate=mutate,
            subscriptions=subs,
            payload_model=payload,
        )

    def freeze(self) -> "HandlerRegistry":
        self._frozen = True
        return self

    def lookup(self, event_type: Any) -> Optional[Registration]:
        return self._registrations.get(event_type_name(event_type))

    def is_registered(self, event_type: Any) -> bool:
        return event_type_name(event_type) in self._registrations

    def subscriptions(self, event_type: Any) -> Tuple[Subscription, ...]:
        reg = self.lookup(event_type)
        return reg.subscriptions if reg else ()

    def payload_model(self, event_type: Any) -> Optional[Type[EventPayload]]:
        reg = self.lookup(event_type)
        return reg.payload_model if reg else None

    def accepts(self, event_type: Any) -> bool:
        """True if the type belongs to the enumeration (or no enumeration is fixed)."""
        if self._event_types is None:
            return True
        return event_type_name(event_type) in self._event_types

    def validate_payload(self, event_type: Any, raw: Dict[str, Any]) -> Dict[str, Any]:
        """
        Validate raw payload input against the event type's record.

        Raises:
            ValidationError: If the payload does not match the record
        """
        model = self.payload_model(event_type)
        if model is None:
            return dict(raw)
        return validate_payload(model, raw, event_type_name(event_type))

    def describe(self) -> List[Dict[str, Any]]:
        """Inspectable view of every registration, in registration order."""
        rows = []
        for name, reg in self._registrations.items():
            rows.append(
                {
                    "event_type": name,
                    "mutation": callable_name(reg.mutate),
                    "payload": reg.payload_model.__name__ if reg.payload_model else None,
                    "subscriptions": [
                        {
                            "action": sub.name,
                            "conditions": [callable_name(c) for c in sub.conditions],
                        }
                        for sub in reg.subscriptions
                    ],
                }
            )
        return rows

    def __len__(self) -> int:
        return len(self._registrations)
