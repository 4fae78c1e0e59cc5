"""Declarative AWS Lambda topologies for Pulumi."""

from lambda_topology.config import (
    DEFAULT_RUNTIME,
    HttpTrigger,
    InlineCode,
    LambdaConfig,
    PubSubTrigger,
    StorageCode,
    TriggerKind,
    load_lambda_config,
    standard_tags,
)
from lambda_topology.errors import (
    ArtifactNotFoundError,
    InvalidConfigError,
    LambdaTopologyError,
    UnknownTriggerKindError,
)
from lambda_topology.topology import LambdaTopology, create_lambda
from lambda_topology.version import __version__

__all__ = [
    "ArtifactNotFoundError",
    "DEFAULT_RUNTIME",
    "HttpTrigger",
    "InlineCode",
    "InvalidConfigError",
    "LambdaConfig",
    "LambdaTopology",
    "LambdaTopologyError",
    "PubSubTrigger",
    "StorageCode",
    "TriggerKind",
    "UnknownTriggerKindError",
    "__version__",
    "create_lambda",
    "load_lambda_config",
    "standard_tags",
]
