"""
Typed event payloads.

Each event type of a process declares one payload record. Stored payloads
stay schemaless mappings; handlers parse them through the record so fields
introduced after first deployment are backfilled with their declared
defaults when older events are replayed.
"""

from typing import Any, Dict, Mapping, Type, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError

P = TypeVar("P", bound="EventPayload")


class EventPayload(BaseModel):
    """
    Base class for per-event-type payload records.

    Unknown keys are ignored so payloads written by older or newer code
    versions still parse. Every field added after an event type is first
    deployed must carry a default: that default is its backfill value.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    @classmethod
    def of(cls: Type[P], event: Any) -> P:
        """Parse the payload of a stored event."""
        return cls.model_validate(dict(event.payload))

    @classmethod
    def normalize(cls, raw: Mapping[str, Any]) -> Dict[str, Any]:
        """Validate raw input and return the JSON form that gets stored."""
        return cls.model_validate(dict(raw)).model_dump(mode="json")


def validate_payload(model: Type[EventPayload], raw: Mapping[str, Any], label: str) -> Dict[str, Any]:
    """
    Normalize raw input through a payload record.

    Raises:
        ValidationError: With one {loc, msg} entry per pydantic error
    """
    try:
        return model.normalize(raw)
    except PydanticValidationError as ex:
        errors = [
            {"loc": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]}
            for err in ex.errors()
        ]
        summary = "; ".join(f"{e['loc']}: {e['msg']}" for e in errors)
        raise ValidationError(f"invalid payload for {label}: {summary}", errors) from ex
