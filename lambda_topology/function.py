"""Lambda function declaration."""

from typing import Mapping, Optional

import pulumi
import pulumi_aws as aws
from pulumi import ResourceOptions

from lambda_topology.config import LambdaConfig
from lambda_topology.packaging import PackagedCode
from lambda_topology.role import LambdaRole


def declare_function(
    name: str,
    config: LambdaConfig,
    role: LambdaRole,
    code: PackagedCode,
    handler: str,
    opts: Optional[ResourceOptions] = None,
) -> aws.lambda_.Function:
    """
    Declare one Lambda function bound to a single code representation.

    Inline archives go to ``code``; uploaded artifacts go to
    ``s3_bucket``/``s3_key``. Never both.
    """
    code_args: dict = {}
    if code.is_inline:
        code_args["code"] = code.archive
    else:
        code_args["s3_bucket"] = code.s3_bucket
        code_args["s3_key"] = code.s3_key
        code_args["source_code_hash"] = code.source_code_hash

    depends_on = [role.policy_attachment]
    if code.upload is not None:
        depends_on.append(code.upload)

    function = aws.lambda_.Function(
        name,
        runtime=config.runtime,
        handler=handler,
        role=role.arn,
        memory_size=config.memory_size,
        timeout=config.timeout,
        environment=_environment_args(config.environment),
        tags=config.tags,
        opts=ResourceOptions.merge(opts, ResourceOptions(depends_on=depends_on)),
        **code_args,
    )

    if config.log_retention_days:
        aws.cloudwatch.LogGroup(
            f"{name}-log-group",
            name=function.name.apply(lambda fn: f"/aws/lambda/{fn}"),
            retention_in_days=config.log_retention_days,
            tags=config.tags,
            opts=opts,
        )

    pulumi.log.info(
        f"Declared function {name} "
        f"({'inline archive' if code.is_inline else 's3 artifact'})"
    )
    return function


def _environment_args(
    environment: Optional[Mapping[str, str]],
) -> Optional[aws.lambda_.FunctionEnvironmentArgs]:
    if not environment:
        return None
    return aws.lambda_.FunctionEnvironmentArgs(variables=dict(environment))
