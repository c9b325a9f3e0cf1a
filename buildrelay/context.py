"""Shared relay state, built once and handed to each component."""

from dataclasses import dataclass, field

from .config import RelaySettings
from .docs import DocIndex
from .lines import Outbox


@dataclass
class RelayContext:
    """Everything components share: settings, the outbox, the doc index."""

    settings: RelaySettings
    outbox: Outbox
    doc_index: DocIndex = field(default_factory=DocIndex)

    @classmethod
    def from_settings(cls, settings: RelaySettings) -> "RelayContext":
        return cls(settings=settings, outbox=Outbox(settings.outbox_max_size))
