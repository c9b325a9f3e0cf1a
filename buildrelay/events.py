"""Buildbot event decoding.

Buildbot's status push posts a form field ``packets`` holding a JSON list
of events. Each event carries an ``event`` discriminator; the rest of its
shape depends on the kind. We look at the discriminator first and only
then decide how to read the remainder.

Only ``buildFinished`` is announced today. Every other kind decodes to
nothing, which is not an error.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from .errors import MalformedPayload

logger = logging.getLogger("buildrelay.events")


@dataclass
class BuildFinished:
    """A finished build, reduced to what we print."""

    builder_name: str = ""
    version_label: str = ""
    suffix: str = ""

    # Buildbot property name -> field
    PROPERTY_FIELDS = {
        "buildername": "builder_name",
        "gitversion": "version_label",
        "ircsuffix": "suffix",
    }

    kind = "buildFinished"

    def as_chat_line(self) -> str:
        return f"{self.builder_name} finished for {self.version_label}{self.suffix}"

    def store(self, key: str, value: str):
        """Store a property. Unknown keys are dropped; the last write wins."""
        field = self.PROPERTY_FIELDS.get(key)
        if field:
            setattr(self, field, value)


# Union of every event kind we know how to print
NormalizedEvent = BuildFinished


def _decode_build_finished(raw: dict) -> BuildFinished:
    event = BuildFinished()

    # Buildbot sends property values of varying type (string, number, null),
    # and we only care about the strings.
    payload = raw.get("payload")
    build = payload.get("build") if isinstance(payload, dict) else None
    properties = build.get("properties") if isinstance(build, dict) else None
    if not isinstance(properties, list):
        return event

    for prop in properties:
        # Every property is a triple: key, value, source
        if not isinstance(prop, list) or len(prop) != 3:
            continue
        key, value, _source = prop
        if isinstance(key, str) and isinstance(value, str):
            event.store(key, value)

    return event


# Discriminator -> decoder. Register new event kinds here.
DECODERS: dict[str, Callable[[dict], NormalizedEvent]] = {
    BuildFinished.kind: _decode_build_finished,
}


def decode_event(raw: Any) -> Optional[NormalizedEvent]:
    """Decode one envelope element.

    Raises:
        MalformedPayload: element is not an object with an ``event`` field.
    """
    if not isinstance(raw, dict) or "event" not in raw:
        raise MalformedPayload("event is not an object with an 'event' field")

    decoder = DECODERS.get(raw["event"]) if isinstance(raw["event"], str) else None
    if decoder is None:
        logger.debug(f"Ignoring event of kind {raw['event']!r}")
        return None
    return decoder(raw)


def decode(raw_payload: Union[bytes, str]) -> list[NormalizedEvent]:
    """Decode a ``packets`` payload into the events we know how to print.

    Args:
        raw_payload: JSON text (bytes are decoded as UTF-8)

    Returns:
        Events in payload order. Unknown kinds are skipped.

    Raises:
        MalformedPayload: payload is not a JSON list of event objects.
    """
    try:
        packets = json.loads(raw_payload)
    except (ValueError, TypeError) as e:
        raise MalformedPayload(f"payload is not JSON: {e}") from e

    if not isinstance(packets, list):
        raise MalformedPayload(f"expected a list of events, got {type(packets).__name__}")

    events = []
    for raw in packets:
        event = decode_event(raw)
        if event is not None:
            events.append(event)
    return events


def decode_lines(raw_payload: Union[bytes, str]) -> list[str]:
    """Decode a payload straight to chat lines."""
    return [event.as_chat_line() for event in decode(raw_payload)]
