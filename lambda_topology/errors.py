"""Custom exceptions for lambda_topology."""


class LambdaTopologyError(Exception):
    """Base exception for all lambda_topology errors."""


class InvalidConfigError(LambdaTopologyError, ValueError):
    """Raised when a topology configuration is malformed."""


class UnknownTriggerKindError(InvalidConfigError):
    """Raised when a trigger kind is neither apigateway nor sns."""

    def __init__(self, kind: object):
        self.kind = kind
        super().__init__(
            f"Unknown trigger kind {kind!r}; expected one of: apigateway, sns"
        )


class ArtifactNotFoundError(LambdaTopologyError, FileNotFoundError):
    """
    Raised when a local build artifact does not exist.

    Raised at composition time, before any upload resource is declared.
    """

    def __init__(self, path: object):
        self.path = path
        super().__init__(
            f"Lambda artifact not found at {path}. "
            "Build first (python -m lambda_topology.build)."
        )
