"""
Error types raised by the topology model, codec, manifest and client.
"""


class TopologyError(Exception):
    """Base class for all topology errors."""


class ParseError(TopologyError, ValueError):
    """A shard definition or template structure could not be parsed."""


class TemplateError(TopologyError, ValueError):
    """A shard template is structurally invalid for the requested operation."""


class UnrecognizedKindError(TopologyError):
    """A shard record names a kind that is not in the known-kind table."""

    def __init__(self, kind: str):
        super().__init__(f"unrecognized shard type {kind!r}")
        self.kind = kind


class InvalidComparisonError(TopologyError, TypeError):
    """A shard template was compared against a non-template value."""


class RpcError(TopologyError):
    """The topology service answered a request with an error."""


class TransientRpcError(RpcError):
    """A topology service call failed in transport and may be retried."""
