"""
Configuration types for a Lambda deployment topology.

A ``LambdaConfig`` is built once per deployment unit and is immutable for the
duration of a Pulumi run. Code sources and triggers are tagged variants:

- ``InlineCode`` / ``StorageCode`` for the function code
- ``HttpTrigger`` / ``PubSubTrigger`` for the front doors
"""

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence, Union

import pulumi

from lambda_topology.errors import InvalidConfigError, UnknownTriggerKindError

DEFAULT_RUNTIME = "python3.12"

_HANDLER_PATTERN = re.compile(r"^[A-Za-z_][\w.\-/]*\.[A-Za-z_]\w*$")
_HTTP_METHODS = {"ANY", "GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"}


class TriggerKind(str, Enum):
    APIGATEWAY = "apigateway"
    SNS = "sns"

    @classmethod
    def parse(cls, value: Any) -> "TriggerKind":
        """Return the matching kind, rejecting anything unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError as e:
            raise UnknownTriggerKindError(value) from e


@dataclass(frozen=True)
class InlineCode:
    """Code archived from a local directory (or zip) at composition time."""

    path: Union[str, Path]


@dataclass(frozen=True)
class StorageCode:
    """
    Code uploaded to S3 as a zip artifact.

    Attributes:
        artifact_path: Local zip. Derived from the handler as
            ``<project_root>/dist/<handler file>.zip`` when omitted.
        bucket_name: Existing bucket to upload into. A dedicated code bucket
            is created when omitted.
        key: Object key. Defaults to ``<function name>/<artifact file>``.
    """

    artifact_path: Optional[Union[str, Path]] = None
    bucket_name: Optional[str] = None
    key: Optional[str] = None


CodeSource = Union[InlineCode, StorageCode]


@dataclass(frozen=True)
class HttpTrigger:
    """API Gateway HTTP API front door."""

    path: Optional[str] = None
    method: Optional[str] = None
    handler: Optional[str] = None
    code: Optional[CodeSource] = None

    kind = TriggerKind.APIGATEWAY

    def __post_init__(self):
        if self.path is not None and not self.path.startswith("/"):
            raise InvalidConfigError(
                f"HTTP trigger path must start with '/': {self.path!r}"
            )
        if self.method is not None and self.method.upper() not in _HTTP_METHODS:
            raise InvalidConfigError(f"Unsupported HTTP method: {self.method!r}")

    @property
    def route_key(self) -> str:
        if self.path is None and self.method is None:
            return "$default"
        method = (self.method or "ANY").upper()
        return f"{method} {self.path or '/'}"


@dataclass(frozen=True)
class PubSubTrigger:
    """SNS topic front door."""

    topic_name: Optional[str] = None
    handler: Optional[str] = None
    code: Optional[CodeSource] = None

    kind = TriggerKind.SNS


TriggerSpec = Union[HttpTrigger, PubSubTrigger]


def standard_tags(environment: str, project: str) -> dict[str, str]:
    """Build the shared tag set applied to every taggable resource."""
    return {
        "Environment": environment,
        "Project": project,
        "ManagedBy": "Pulumi",
    }


@dataclass(frozen=True)
class LambdaConfig:
    """
    Desired Lambda topology.

    ``function_per_trigger`` declares one function per trigger; when False a
    single function is shared by every front door.
    """

    name: str
    handler: str
    triggers: Sequence[TriggerSpec]
    code: CodeSource
    runtime: str = DEFAULT_RUNTIME
    tags: Optional[Mapping[str, str]] = None
    function_per_trigger: bool = True
    memory_size: int = 128
    timeout: int = 3
    environment: Optional[Mapping[str, str]] = None
    log_retention_days: Optional[int] = None
    project_root: Optional[Union[str, Path]] = None

    def __post_init__(self):
        if not self.name:
            raise InvalidConfigError("Lambda name must not be empty")
        if not self.triggers:
            raise InvalidConfigError(f"{self.name}: at least one trigger is required")
        # Freeze the trigger sequence so the config stays immutable
        object.__setattr__(self, "triggers", tuple(self.triggers))
        for trigger in self.triggers:
            if not isinstance(trigger, (HttpTrigger, PubSubTrigger)):
                raise UnknownTriggerKindError(getattr(trigger, "kind", trigger))
            if trigger.handler is not None:
                _validate_handler(trigger.handler)
            if trigger.code is not None:
                _validate_code(trigger.code)
        _validate_handler(self.handler)
        _validate_code(self.code)
        if self.tags is not None:
            if not isinstance(self.tags, Mapping):
                raise InvalidConfigError(f"{self.name}: tags must be a mapping")
            if not self.tags:
                raise InvalidConfigError(f"{self.name}: tags must not be empty")
            for key, value in self.tags.items():
                if not isinstance(key, str) or not isinstance(value, str):
                    raise InvalidConfigError(
                        f"{self.name}: tag {key!r} must map a string to a string"
                    )
            object.__setattr__(self, "tags", dict(self.tags))
        if self.memory_size < 128:
            raise InvalidConfigError("memory_size must be at least 128 MB")
        if self.timeout < 1:
            raise InvalidConfigError("timeout must be at least 1 second")

    def handler_for(self, trigger: TriggerSpec) -> str:
        return trigger.handler or self.handler

    def code_for(self, trigger: TriggerSpec) -> CodeSource:
        return trigger.code or self.code


def _validate_handler(handler: str) -> None:
    if not isinstance(handler, str) or not _HANDLER_PATTERN.match(handler):
        raise InvalidConfigError(
            f"Handler must look like 'module.function': {handler!r}"
        )


def _validate_code(code: Any) -> None:
    if not isinstance(code, (InlineCode, StorageCode)):
        raise InvalidConfigError(f"Unsupported code source: {code!r}")


def parse_trigger(raw: Mapping[str, Any]) -> TriggerSpec:
    """Build a trigger from its stack-config dictionary form."""
    if not isinstance(raw, Mapping):
        raise InvalidConfigError(f"Trigger must be a mapping: {raw!r}")
    kind = TriggerKind.parse(raw.get("type", raw.get("kind")))
    code = parse_code(raw["code"]) if raw.get("code") else None
    if kind is TriggerKind.APIGATEWAY:
        return HttpTrigger(
            path=raw.get("path"),
            method=raw.get("method"),
            handler=raw.get("handler"),
            code=code,
        )
    return PubSubTrigger(
        topic_name=raw.get("topicName"),
        handler=raw.get("handler"),
        code=code,
    )


def parse_code(raw: Mapping[str, Any]) -> CodeSource:
    """
    Build a code source from its stack-config dictionary form.

    ``{"path": "app"}`` is inline; anything with ``artifactPath``,
    ``bucket`` or ``key`` (or ``{"storage": true}``) is uploaded to S3.
    """
    if not isinstance(raw, Mapping):
        raise InvalidConfigError(f"Code source must be a mapping: {raw!r}")
    storage_keys = {"artifactPath", "bucket", "key", "storage"}
    if "path" in raw and storage_keys & raw.keys():
        raise InvalidConfigError(
            "Code source must be either inline (path) or storage "
            "(artifactPath/bucket/key), not both"
        )
    if "path" in raw:
        return InlineCode(path=raw["path"])
    if storage_keys & raw.keys():
        return StorageCode(
            artifact_path=raw.get("artifactPath"),
            bucket_name=raw.get("bucket"),
            key=raw.get("key"),
        )
    raise InvalidConfigError(f"Code source has no path or artifact: {raw!r}")


def load_lambda_config(
    config: pulumi.Config, key: str = "lambda"
) -> LambdaConfig:
    """
    Read a ``LambdaConfig`` from structured stack configuration.

    Example ``Pulumi.<stack>.yaml``::

        lambda-topology:lambda:
          name: hello
          handler: handlers.api_handler.handler
          code: {artifactPath: dist/handlers.zip}
          triggers:
            - type: apigateway
            - type: sns
              handler: handlers.sns_handler.handler
          tags: {Environment: dev, Project: hello}
    """
    raw = config.require_object(key)
    if not isinstance(raw, Mapping):
        raise InvalidConfigError(f"'{key}' must be an object")
    try:
        return LambdaConfig(
            name=raw["name"],
            handler=raw["handler"],
            triggers=[parse_trigger(t) for t in raw.get("triggers", [])],
            code=parse_code(raw["code"]),
            runtime=raw.get("runtime", DEFAULT_RUNTIME),
            tags=raw.get("tags"),
            function_per_trigger=raw.get("functionPerTrigger", True),
            memory_size=int(raw.get("memorySize", 128)),
            timeout=int(raw.get("timeout", 3)),
            environment=raw.get("environment"),
            log_retention_days=raw.get("logRetentionDays"),
            project_root=raw.get("projectRoot"),
        )
    except KeyError as e:
        raise InvalidConfigError(f"'{key}' is missing required field {e}") from e
