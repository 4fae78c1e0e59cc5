"""
Pulumi component composing a complete Lambda topology.

The role is declared once. Then, for each trigger:

1. Resolve the function code (inline archive, or an S3 upload)
2. Declare the function (or reuse the shared one)
3. Wire the trigger's front door and invoke permission

Local preconditions (inline paths and built artifacts on disk, one artifact
per explicit bucket key) are checked for every trigger before any resource,
the component included, is declared. A missing build fails the run without
leaving a half-declared graph.
"""

from collections import Counter
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pulumi
import pulumi_aws as aws
from pulumi import ComponentResource, Output, ResourceOptions

from lambda_topology.config import (
    CodeSource,
    InlineCode,
    LambdaConfig,
    TriggerSpec,
)
from lambda_topology.errors import ArtifactNotFoundError, InvalidConfigError
from lambda_topology.function import declare_function
from lambda_topology.packaging import (
    PackagedCode,
    declare_code_bucket,
    default_artifact_path,
    inline_code,
    lookup_code_bucket,
    resolve_artifact,
    upload_artifact,
)
from lambda_topology.role import LambdaRole, create_lambda_role
from lambda_topology.triggers import FrontDoorBinding, wire_trigger


class LambdaTopology(ComponentResource):
    """
    One execution role, one or more functions, and one front door per trigger.

    Attributes:
        role: The shared execution role.
        functions: Declared functions, in trigger order (one entry when
            ``function_per_trigger`` is False).
        bindings: One ``FrontDoorBinding`` per trigger, in trigger order.
        code_buckets: Code buckets keyed by bucket name ("" for the
            dedicated bucket this component creates).
    """

    def __init__(
        self,
        config: LambdaConfig,
        opts: Optional[ResourceOptions] = None,
    ):
        artifacts = _resolve_artifacts(config)

        super().__init__("lambda-topology:index:LambdaTopology", config.name, None, opts)
        self.config = config
        child_opts = ResourceOptions(parent=self)

        self.role: LambdaRole = create_lambda_role(
            config.name, tags=config.tags, opts=child_opts
        )
        self.functions: List[aws.lambda_.Function] = []
        self.bindings: List[FrontDoorBinding] = []
        self.code_buckets: Dict[str, aws.s3.Bucket] = {}
        self._packages: Dict[Tuple, PackagedCode] = {}

        shared_function: Optional[aws.lambda_.Function] = None
        names = _trigger_names(config)

        for index, trigger in enumerate(config.triggers):
            if config.function_per_trigger:
                function = self._declare_function(
                    f"{config.name}-{names[index][0]}",
                    trigger,
                    artifacts[index],
                    child_opts,
                )
                self.functions.append(function)
            else:
                if shared_function is None:
                    shared_function = self._declare_function(
                        config.name, trigger, artifacts[index], child_opts
                    )
                    self.functions.append(shared_function)
                function = shared_function

            binding = wire_trigger(
                names[index][1],
                function,
                trigger,
                tags=config.tags,
                opts=child_opts,
            )
            self.bindings.append(binding)

        self.function_names: List[Output[str]] = [f.name for f in self.functions]
        self.function_arns: List[Output[str]] = [f.arn for f in self.functions]
        self.endpoints: List[Output[str]] = [
            b.endpoint for b in self.bindings if b.endpoint is not None
        ]
        self.topic_arns: List[Output[str]] = [
            b.topic_arn for b in self.bindings if b.topic_arn is not None
        ]

        self.register_outputs(
            {
                "role_arn": self.role.arn,
                "function_names": self.function_names,
                "function_arns": self.function_arns,
                "endpoints": self.endpoints,
                "topic_arns": self.topic_arns,
            }
        )

    def _declare_function(
        self,
        name: str,
        trigger: TriggerSpec,
        artifact: Optional[Path],
        opts: ResourceOptions,
    ) -> aws.lambda_.Function:
        code = self._package(name, self.config.code_for(trigger), artifact, opts)
        return declare_function(
            name,
            self.config,
            self.role,
            code,
            self.config.handler_for(trigger),
            opts=opts,
        )

    def _package(
        self,
        name: str,
        code: CodeSource,
        artifact: Optional[Path],
        opts: ResourceOptions,
    ) -> PackagedCode:
        """Return packaged code, uploading each distinct artifact once."""
        if isinstance(code, InlineCode):
            cache_key: Tuple = ("inline", str(code.path))
        else:
            cache_key = ("s3", str(artifact), code.bucket_name, code.key)
        if cache_key in self._packages:
            return self._packages[cache_key]

        if isinstance(code, InlineCode):
            packaged = inline_code(code.path)
        else:
            bucket = self._code_bucket(code.bucket_name, opts)
            key = code.key or f"{name}/{artifact.name}"
            packaged = upload_artifact(
                name,
                artifact,
                bucket.id,
                key,
                tags=self.config.tags,
                opts=opts,
            )
        self._packages[cache_key] = packaged
        return packaged

    def _code_bucket(
        self, bucket_name: Optional[str], opts: ResourceOptions
    ) -> aws.s3.Bucket:
        key = bucket_name or ""
        if key not in self.code_buckets:
            if bucket_name:
                pulumi.log.info(f"Reusing existing code bucket {bucket_name}")
                self.code_buckets[key] = lookup_code_bucket(
                    f"{self.config.name}-{bucket_name}", bucket_name, opts
                )
            else:
                self.code_buckets[key] = declare_code_bucket(
                    self.config.name, tags=self.config.tags, opts=opts
                )
        return self.code_buckets[key]


def _resolve_artifacts(config: LambdaConfig) -> List[Optional[Path]]:
    """
    Check every local artifact the triggers need, in trigger order.

    Returns the storage artifact per trigger (None for inline code).

    Raises:
        ArtifactNotFoundError: If an inline path or a built artifact is missing.
        InvalidConfigError: If one explicit bucket key would hold two
            different artifacts.
    """
    resolved: List[Optional[Path]] = []
    claimed: Dict[Tuple[Optional[str], str], Path] = {}
    for trigger in config.triggers:
        code = config.code_for(trigger)
        if isinstance(code, InlineCode):
            if not Path(code.path).exists():
                raise ArtifactNotFoundError(code.path)
            resolved.append(None)
            continue

        artifact = resolve_artifact(
            code.artifact_path
            or default_artifact_path(config.handler_for(trigger), config.project_root)
        )
        if code.key:
            owner = claimed.setdefault((code.bucket_name, code.key), artifact)
            if owner.resolve() != artifact.resolve():
                raise InvalidConfigError(
                    f"{config.name}: key {code.key!r} would hold both {owner} "
                    f"and {artifact}; give each artifact its own key"
                )
        resolved.append(artifact)
    return resolved


def _trigger_names(config: LambdaConfig) -> List[Tuple[str, str]]:
    """
    Return (function suffix, front door name) per trigger.

    Function suffix is the trigger kind; the front door name is the topology
    name. Both get a 1-based counter when a kind appears more than once.
    """
    counts = Counter(t.kind for t in config.triggers)
    seen: Counter = Counter()
    names = []
    for trigger in config.triggers:
        seen[trigger.kind] += 1
        suffix = trigger.kind.value
        front_door = config.name
        if counts[trigger.kind] > 1:
            suffix = f"{suffix}-{seen[trigger.kind]}"
            front_door = f"{config.name}-{seen[trigger.kind]}"
        names.append((suffix, front_door))
    return names


def create_lambda(
    config: LambdaConfig, opts: Optional[ResourceOptions] = None
) -> List[aws.lambda_.Function]:
    """Declare the topology and return its functions."""
    return LambdaTopology(config, opts=opts).functions
