"""Error taxonomy for the relay.

Only ``ListenerBindFailed`` is allowed to reach the entry point. Everything
else is caught at the component that raised it, logged, and turned into
"no chat line".
"""


class RelayError(Exception):
    """Base class for all relay errors."""


class MalformedPayload(RelayError):
    """Webhook payload is not a valid event envelope."""


class TransportError(RelayError):
    """The chat transport refused an operation."""


class TransportDisconnected(TransportError):
    """The chat transport lost its connection."""


class FetchFailed(RelayError):
    """A link title fetch failed (network error, bad status, no title)."""


class FetchTimeout(FetchFailed):
    """A link title fetch did not finish before its deadline."""


class IndexRefreshFailed(RelayError):
    """The documentation index could not be refreshed."""


class ListenerBindFailed(RelayError):
    """The webhook HTTP listener could not bind its address."""
