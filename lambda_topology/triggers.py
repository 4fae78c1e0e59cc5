"""
Front doors that invoke a Lambda function.

HTTP:   Api -> Integration -> Route -> Stage -> Permission
PubSub: Topic -> TopicSubscription -> Permission

Each trigger produces exactly one invoke permission, scoped to the service
principal of its front door and to that front door's ARN.
"""

from dataclasses import dataclass, field
from typing import List, Mapping, Optional

import pulumi
import pulumi_aws as aws
from pulumi import Output, ResourceOptions

from lambda_topology.config import (
    HttpTrigger,
    PubSubTrigger,
    TriggerKind,
    TriggerSpec,
)
from lambda_topology.errors import UnknownTriggerKindError

APIGATEWAY_PRINCIPAL = "apigateway.amazonaws.com"
SNS_PRINCIPAL = "sns.amazonaws.com"

PRINCIPALS = {
    TriggerKind.APIGATEWAY: APIGATEWAY_PRINCIPAL,
    TriggerKind.SNS: SNS_PRINCIPAL,
}


@dataclass
class FrontDoorBinding:
    """Resources wiring one trigger to one function."""

    kind: TriggerKind
    function: aws.lambda_.Function
    permission: aws.lambda_.Permission
    source_arn: Output[str]
    resources: List[pulumi.CustomResource] = field(default_factory=list)
    endpoint: Optional[Output[str]] = None
    topic_arn: Optional[Output[str]] = None


def wire_http_trigger(
    name: str,
    function: aws.lambda_.Function,
    trigger: HttpTrigger,
    tags: Optional[Mapping[str, str]] = None,
    opts: Optional[ResourceOptions] = None,
) -> FrontDoorBinding:
    """Expose the function through an API Gateway HTTP API."""
    api = aws.apigatewayv2.Api(
        f"{name}-api",
        protocol_type="HTTP",
        tags=tags,
        opts=opts,
    )

    integration = aws.apigatewayv2.Integration(
        f"{name}-integration",
        api_id=api.id,
        integration_type="AWS_PROXY",
        integration_uri=function.invoke_arn,
        integration_method="POST",
        payload_format_version="2.0",
        opts=opts,
    )

    route = aws.apigatewayv2.Route(
        f"{name}-route",
        api_id=api.id,
        route_key=trigger.route_key,
        target=integration.id.apply(lambda id: f"integrations/{id}"),
        opts=ResourceOptions.merge(
            opts,
            ResourceOptions(
                replace_on_changes=["route_key", "target"],
                delete_before_replace=True,
            ),
        ),
    )

    stage = aws.apigatewayv2.Stage(
        f"{name}-stage",
        api_id=api.id,
        name="$default",
        auto_deploy=True,
        tags=tags,
        opts=ResourceOptions.merge(opts, ResourceOptions(depends_on=[route])),
    )

    source_arn = api.execution_arn.apply(lambda arn: f"{arn}/*/*")
    permission = aws.lambda_.Permission(
        f"{name}-apiPermission",
        action="lambda:InvokeFunction",
        function=function.name,
        principal=APIGATEWAY_PRINCIPAL,
        source_arn=source_arn,
        opts=opts,
    )

    pulumi.log.info(f"Wired HTTP trigger {name} ({trigger.route_key})")
    return FrontDoorBinding(
        kind=TriggerKind.APIGATEWAY,
        function=function,
        permission=permission,
        source_arn=source_arn,
        resources=[api, integration, route, stage],
        endpoint=api.api_endpoint,
    )


def wire_pubsub_trigger(
    name: str,
    function: aws.lambda_.Function,
    trigger: PubSubTrigger,
    tags: Optional[Mapping[str, str]] = None,
    opts: Optional[ResourceOptions] = None,
) -> FrontDoorBinding:
    """Subscribe the function to a new SNS topic."""
    topic = aws.sns.Topic(
        f"{name}-topic",
        name=trigger.topic_name,
        tags=tags,
        opts=opts,
    )

    subscription = aws.sns.TopicSubscription(
        f"{name}-subscription",
        topic=topic.arn,
        protocol="lambda",
        endpoint=function.arn,
        opts=opts,
    )

    permission = aws.lambda_.Permission(
        f"{name}-snsPermission",
        action="lambda:InvokeFunction",
        function=function.name,
        principal=SNS_PRINCIPAL,
        source_arn=topic.arn,
        opts=opts,
    )

    pulumi.log.info(f"Wired SNS trigger {name}")
    return FrontDoorBinding(
        kind=TriggerKind.SNS,
        function=function,
        permission=permission,
        source_arn=topic.arn,
        resources=[topic, subscription],
        topic_arn=topic.arn,
    )


def wire_trigger(
    name: str,
    function: aws.lambda_.Function,
    trigger: TriggerSpec,
    tags: Optional[Mapping[str, str]] = None,
    opts: Optional[ResourceOptions] = None,
) -> FrontDoorBinding:
    """Dispatch on trigger kind; unknown kinds are rejected."""
    if isinstance(trigger, HttpTrigger):
        return wire_http_trigger(name, function, trigger, tags, opts)
    if isinstance(trigger, PubSubTrigger):
        return wire_pubsub_trigger(name, function, trigger, tags, opts)
    raise UnknownTriggerKindError(getattr(trigger, "kind", trigger))
