"""Execution role for Lambda functions."""

import json
from dataclasses import dataclass
from typing import Mapping, Optional

import pulumi
import pulumi_aws as aws
from pulumi import Output, ResourceOptions

LAMBDA_SERVICE_PRINCIPAL = "lambda.amazonaws.com"
BASIC_EXECUTION_POLICY_ARN = (
    "arn:aws:iam::aws:policy/service-role/AWSLambdaBasicExecutionRole"
)

ASSUME_ROLE_POLICY = {
    "Version": "2012-10-17",
    "Statement": [
        {
            "Action": "sts:AssumeRole",
            "Principal": {"Service": LAMBDA_SERVICE_PRINCIPAL},
            "Effect": "Allow",
            "Sid": "",
        }
    ],
}


@dataclass
class LambdaRole:
    role: aws.iam.Role
    policy_attachment: aws.iam.RolePolicyAttachment

    @property
    def arn(self) -> Output[str]:
        return self.role.arn

    @property
    def name(self) -> Output[str]:
        return self.role.name


def create_lambda_role(
    name: str,
    tags: Optional[Mapping[str, str]] = None,
    opts: Optional[ResourceOptions] = None,
) -> LambdaRole:
    """
    Declare an IAM role the Lambda service can assume.

    The role gets AWSLambdaBasicExecutionRole so functions can write logs.
    Its ARN is only known after the engine creates the role.
    """
    role = aws.iam.Role(
        f"{name}-role",
        assume_role_policy=json.dumps(ASSUME_ROLE_POLICY),
        tags=tags,
        opts=opts,
    )

    attachment = aws.iam.RolePolicyAttachment(
        f"{name}-policy",
        role=role.name,
        policy_arn=BASIC_EXECUTION_POLICY_ARN,
        opts=opts,
    )

    pulumi.log.info(f"Declared execution role {name}-role")
    return LambdaRole(role=role, policy_attachment=attachment)
