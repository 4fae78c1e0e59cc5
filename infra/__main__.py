"""Main Pulumi program for the Lambda topology."""

import dataclasses

import pulumi

from lambda_topology import LambdaTopology, load_lambda_config, standard_tags
from lambda_topology.config import LambdaConfig

config = pulumi.Config("lambda-topology")
stack = pulumi.get_stack()

lambda_config: LambdaConfig = load_lambda_config(config)

# Stacks without explicit tags get the standard set for this stack
if lambda_config.tags is None:
    project = config.get("project") or pulumi.get_project()
    lambda_config = dataclasses.replace(
        lambda_config, tags=standard_tags(environment=stack, project=project)
    )

topology = LambdaTopology(lambda_config)

pulumi.export("role_arn", topology.role.arn)
pulumi.export("function_names", topology.function_names)
pulumi.export("function_arns", topology.function_arns)
pulumi.export("api_endpoints", topology.endpoints)
pulumi.export("topic_arns", topology.topic_arns)
