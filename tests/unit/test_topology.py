# pylint: disable=redefined-outer-name
"""Unit tests for the LambdaTopology component."""
import json
import zipfile

import pytest

from lambda_topology.config import (
    HttpTrigger,
    InlineCode,
    LambdaConfig,
    PubSubTrigger,
    StorageCode,
)
from lambda_topology.errors import ArtifactNotFoundError, InvalidConfigError
from lambda_topology.role import BASIC_EXECUTION_POLICY_ARN, create_lambda_role
from lambda_topology.topology import LambdaTopology, create_lambda
from lambda_topology.triggers import APIGATEWAY_PRINCIPAL, SNS_PRINCIPAL

FUNCTION = "aws:lambda/function:Function"
PERMISSION = "aws:lambda/permission:Permission"
ROLE = "aws:iam/role:Role"
BUCKET = "aws:s3/bucket:Bucket"
BUCKET_OBJECT = "aws:s3/bucketObjectv2:BucketObjectv2"
LOG_GROUP = "aws:cloudwatch/logGroup:LogGroup"
TAGS = {"Environment": "dev", "Project": "hello"}


@pytest.fixture
def inline_config(handler_dir):
    return LambdaConfig(
        name="hello",
        handler="index.handler",
        triggers=[HttpTrigger(), PubSubTrigger()],
        code=InlineCode(handler_dir),
        tags=TAGS,
    )


def storage_config(project_root, triggers, **kwargs):
    return LambdaConfig(
        name="hello",
        handler="index.handler",
        triggers=triggers,
        code=StorageCode(**kwargs),
        tags=TAGS,
        project_root=project_root,
    )


# === ROLE ===


@pytest.mark.unit
def test_single_role_with_trust_policy(run_program, pulumi_mocks, inline_config):
    run_program(lambda: LambdaTopology(inline_config))

    roles = pulumi_mocks.of_type(ROLE)
    assert len(roles) == 1
    assert roles[0].name == "hello-role"
    policy = json.loads(roles[0].inputs["assumeRolePolicy"])
    statement = policy["Statement"][0]
    assert statement["Principal"] == {"Service": "lambda.amazonaws.com"}
    assert statement["Action"] == "sts:AssumeRole"
    assert roles[0].inputs["tags"] == TAGS

    attachment = pulumi_mocks.named("hello-policy").inputs
    assert attachment["policyArn"] == BASIC_EXECUTION_POLICY_ARN
    assert attachment["role"] == "hello-role"


@pytest.mark.unit
def test_create_lambda_role_without_options(run_program, pulumi_mocks):
    roles = []

    run_program(lambda: roles.append(create_lambda_role("standalone")))

    assert sorted(r.name for r in pulumi_mocks.resources) == [
        "standalone-policy",
        "standalone-role",
    ]
    # The attachment is ordered after the role through its role name input
    attachment = pulumi_mocks.named("standalone-policy").inputs
    assert attachment["role"] == "standalone-role"
    assert roles[0].policy_attachment is not None


# === FUNCTIONS ===


@pytest.mark.unit
def test_one_function_per_trigger(run_program, pulumi_mocks, inline_config):
    run_program(lambda: LambdaTopology(inline_config))

    functions = pulumi_mocks.of_type(FUNCTION)
    assert sorted(f.name for f in functions) == ["hello-apigateway", "hello-sns"]
    for function in functions:
        assert function.inputs["role"] == "arn:aws:mock:us-east-1:123456789012:hello-role"
        assert function.inputs["handler"] == "index.handler"
        assert function.inputs["runtime"] == "python3.12"
        assert function.inputs["tags"] == TAGS


@pytest.mark.unit
def test_shared_function_for_all_triggers(run_program, pulumi_mocks, handler_dir):
    config = LambdaConfig(
        name="hello",
        handler="index.handler",
        triggers=[HttpTrigger(), PubSubTrigger()],
        code=InlineCode(handler_dir),
        function_per_trigger=False,
    )
    topologies = []

    run_program(lambda: topologies.append(LambdaTopology(config)))

    functions = pulumi_mocks.of_type(FUNCTION)
    assert [f.name for f in functions] == ["hello"]
    assert len(topologies[0].functions) == 1
    for permission in pulumi_mocks.of_type(PERMISSION):
        assert permission.inputs["function"] == "hello"


@pytest.mark.unit
def test_trigger_handler_override(run_program, pulumi_mocks, handler_dir):
    config = LambdaConfig(
        name="hello",
        handler="handlers.api_handler.handler",
        triggers=[HttpTrigger(), PubSubTrigger(handler="handlers.sns_handler.handler")],
        code=InlineCode(handler_dir),
    )

    run_program(lambda: LambdaTopology(config))

    assert pulumi_mocks.named("hello-apigateway").inputs["handler"] == (
        "handlers.api_handler.handler"
    )
    assert pulumi_mocks.named("hello-sns").inputs["handler"] == (
        "handlers.sns_handler.handler"
    )


@pytest.mark.unit
def test_inline_functions_use_only_archive(run_program, pulumi_mocks, inline_config):
    run_program(lambda: LambdaTopology(inline_config))

    for function in pulumi_mocks.of_type(FUNCTION):
        assert "code" in function.inputs
        assert "s3Bucket" not in function.inputs
        assert "s3Key" not in function.inputs
    assert pulumi_mocks.of_type(BUCKET_OBJECT) == []


@pytest.mark.unit
def test_log_group_when_retention_configured(run_program, pulumi_mocks, handler_dir):
    config = LambdaConfig(
        name="hello",
        handler="index.handler",
        triggers=[HttpTrigger()],
        code=InlineCode(handler_dir),
        log_retention_days=14,
    )

    run_program(lambda: LambdaTopology(config))

    log_group = pulumi_mocks.named("hello-apigateway-log-group").inputs
    assert log_group["name"] == "/aws/lambda/hello-apigateway"
    assert log_group["retentionInDays"] == 14


@pytest.mark.unit
def test_no_log_group_without_retention(run_program, pulumi_mocks, inline_config):
    run_program(lambda: LambdaTopology(inline_config))

    assert pulumi_mocks.of_type(LOG_GROUP) == []
    assert len(pulumi_mocks.of_type(FUNCTION)) == 2


# === PERMISSIONS ===


@pytest.mark.unit
@pytest.mark.parametrize(
    "triggers",
    [
        [HttpTrigger()],
        [PubSubTrigger()],
        [HttpTrigger(), PubSubTrigger()],
        [HttpTrigger(path="/a"), HttpTrigger(path="/b"), PubSubTrigger()],
        [PubSubTrigger(), PubSubTrigger(), PubSubTrigger()],
    ],
)
def test_one_permission_per_trigger(run_program, pulumi_mocks, handler_dir, triggers):
    config = LambdaConfig(
        name="hello",
        handler="index.handler",
        triggers=triggers,
        code=InlineCode(handler_dir),
    )

    run_program(lambda: LambdaTopology(config))

    permissions = pulumi_mocks.of_type(PERMISSION)
    assert len(permissions) == len(triggers)
    expected = sorted(
        APIGATEWAY_PRINCIPAL if isinstance(t, HttpTrigger) else SNS_PRINCIPAL
        for t in triggers
    )
    assert sorted(p.inputs["principal"] for p in permissions) == expected
    source_arns = [p.inputs["sourceArn"] for p in permissions]
    assert len(set(source_arns)) == len(triggers)


@pytest.mark.unit
def test_repeated_kinds_get_numbered_names(run_program, pulumi_mocks, handler_dir):
    config = LambdaConfig(
        name="hello",
        handler="index.handler",
        triggers=[HttpTrigger(path="/a"), HttpTrigger(path="/b")],
        code=InlineCode(handler_dir),
    )

    run_program(lambda: LambdaTopology(config))

    assert sorted(f.name for f in pulumi_mocks.of_type(FUNCTION)) == [
        "hello-apigateway-1",
        "hello-apigateway-2",
    ]
    assert pulumi_mocks.named("hello-1-route").inputs["routeKey"] == "ANY /a"
    assert pulumi_mocks.named("hello-2-route").inputs["routeKey"] == "ANY /b"


# === STORAGE CODE ===


@pytest.mark.unit
def test_storage_code_uploads_to_new_bucket(run_program, pulumi_mocks, artifact):
    config = storage_config(
        artifact.parent.parent, [HttpTrigger(), PubSubTrigger()]
    )

    run_program(lambda: LambdaTopology(config))

    buckets = pulumi_mocks.of_type(BUCKET)
    assert [b.name for b in buckets] == ["hello-code-bucket"]
    assert buckets[0].inputs["tags"] == TAGS

    # Both functions share the same artifact, uploaded once
    objects = pulumi_mocks.of_type(BUCKET_OBJECT)
    assert len(objects) == 1
    assert objects[0].inputs["key"] == "hello-apigateway/index.zip"
    assert objects[0].inputs["bucket"] == "hello-code-bucket_id"

    for function in pulumi_mocks.of_type(FUNCTION):
        assert "code" not in function.inputs
        assert function.inputs["s3Bucket"] == "hello-code-bucket_id"
        assert function.inputs["s3Key"] == "hello-apigateway/index.zip"
        assert function.inputs["sourceCodeHash"]


@pytest.mark.unit
def test_storage_code_reuses_existing_bucket(run_program, pulumi_mocks, artifact):
    config = storage_config(
        None,
        [HttpTrigger()],
        artifact_path=artifact,
        bucket_name="shared-artifacts",
        key="releases/hello.zip",
    )

    run_program(lambda: LambdaTopology(config))

    buckets = pulumi_mocks.of_type(BUCKET)
    assert len(buckets) == 1
    assert buckets[0].resource_id == "shared-artifacts"
    assert not [r for r in pulumi_mocks.resources if r.name.endswith("-pab")]

    obj = pulumi_mocks.of_type(BUCKET_OBJECT)[0].inputs
    assert obj["bucket"] == "shared-artifacts"
    assert obj["key"] == "releases/hello.zip"
    function = pulumi_mocks.of_type(FUNCTION)[0].inputs
    assert function["s3Bucket"] == "shared-artifacts"
    assert function["s3Key"] == "releases/hello.zip"


@pytest.mark.unit
def test_missing_artifact_fails_before_upload(run_program, pulumi_mocks, tmp_path):
    config = storage_config(tmp_path, [HttpTrigger(), PubSubTrigger()])

    with pytest.raises(ArtifactNotFoundError, match="Build first"):
        run_program(lambda: LambdaTopology(config))

    assert pulumi_mocks.resources == []


@pytest.mark.unit
def test_missing_inline_path_fails_before_declaring(
    run_program, pulumi_mocks, handler_dir, tmp_path
):
    config = LambdaConfig(
        name="hello",
        handler="index.handler",
        triggers=[
            HttpTrigger(),
            PubSubTrigger(code=InlineCode(tmp_path / "missing")),
        ],
        code=InlineCode(handler_dir),
    )

    with pytest.raises(ArtifactNotFoundError, match="missing"):
        run_program(lambda: LambdaTopology(config))

    assert pulumi_mocks.resources == []


def build_zip(dist, name):
    path = dist / f"{name}.zip"
    with zipfile.ZipFile(path, "w") as zipf:
        zipf.writestr(f"handlers/{name}.py", "def handler(event, context):\n    return {}\n")
    return path


@pytest.mark.unit
def test_explicit_key_rejects_two_artifacts(run_program, pulumi_mocks, tmp_path):
    dist = tmp_path / "dist"
    dist.mkdir()
    build_zip(dist, "api_handler")
    build_zip(dist, "sns_handler")
    config = LambdaConfig(
        name="hello",
        handler="handlers.api_handler.handler",
        triggers=[
            HttpTrigger(),
            PubSubTrigger(handler="handlers.sns_handler.handler"),
        ],
        code=StorageCode(bucket_name="shared", key="releases/hello.zip"),
        project_root=tmp_path,
    )

    with pytest.raises(InvalidConfigError, match="releases/hello.zip"):
        run_program(lambda: LambdaTopology(config))

    assert pulumi_mocks.of_type(BUCKET_OBJECT) == []
    assert pulumi_mocks.of_type(FUNCTION) == []


@pytest.mark.unit
def test_explicit_key_shared_by_same_artifact(run_program, pulumi_mocks, artifact):
    config = storage_config(
        None,
        [HttpTrigger(), PubSubTrigger(handler="index.other")],
        artifact_path=artifact,
        bucket_name="shared",
        key="releases/hello.zip",
    )

    run_program(lambda: LambdaTopology(config))

    objects = pulumi_mocks.of_type(BUCKET_OBJECT)
    assert len(objects) == 1
    assert objects[0].inputs["key"] == "releases/hello.zip"
    assert {f.inputs["s3Key"] for f in pulumi_mocks.of_type(FUNCTION)} == {
        "releases/hello.zip"
    }


@pytest.mark.unit
def test_mixed_code_sources(run_program, pulumi_mocks, artifact, handler_dir):
    config = LambdaConfig(
        name="hello",
        handler="index.handler",
        triggers=[HttpTrigger(), PubSubTrigger(code=InlineCode(handler_dir))],
        code=StorageCode(artifact_path=artifact),
    )

    run_program(lambda: LambdaTopology(config))

    api_fn = pulumi_mocks.named("hello-apigateway").inputs
    sns_fn = pulumi_mocks.named("hello-sns").inputs
    assert "s3Key" in api_fn and "code" not in api_fn
    assert "code" in sns_fn and "s3Key" not in sns_fn


# === OUTPUTS ===


@pytest.mark.unit
def test_create_lambda_returns_functions(run_program, pulumi_mocks, inline_config):
    results = []

    run_program(lambda: results.extend(create_lambda(inline_config)))

    assert len(results) == 2
    assert len(pulumi_mocks.of_type(FUNCTION)) == 2


@pytest.mark.unit
def test_topology_outputs(run_program, inline_config):
    topologies = []

    run_program(lambda: topologies.append(LambdaTopology(inline_config)))

    topology = topologies[0]
    assert len(topology.bindings) == 2
    assert len(topology.endpoints) == 1
    assert len(topology.topic_arns) == 1
    assert len(topology.function_arns) == 2
