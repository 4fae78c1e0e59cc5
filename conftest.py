"""pytest configuration and Pulumi mocks for topology tests."""

import zipfile
from pathlib import Path
from typing import Any, Callable, Dict, List

import pulumi
import pytest


def pytest_configure(config):
    """Add custom markers."""
    config.addinivalue_line("markers", "unit: fast tests with no cloud access")


class RecordingMocks(pulumi.runtime.Mocks):
    """
    Pulumi mocks that record every declared resource.

    Provider-assigned attributes (ARNs, endpoints) are filled in with
    predictable fake values.
    """

    def __init__(self):
        self.resources: List[pulumi.runtime.MockResourceArgs] = []

    def new_resource(self, args: pulumi.runtime.MockResourceArgs):
        self.resources.append(args)
        resource_id = args.resource_id or f"{args.name}_id"
        outputs: Dict[str, Any] = dict(args.inputs)
        outputs.setdefault("name", args.name)
        outputs.setdefault(
            "arn", f"arn:aws:mock:us-east-1:123456789012:{args.name}"
        )
        if args.typ == "aws:lambda/function:Function":
            outputs["invokeArn"] = (
                "arn:aws:apigateway:us-east-1:lambda:path/2015-03-31/"
                f"functions/{outputs['arn']}/invocations"
            )
        if args.typ == "aws:apigatewayv2/api:Api":
            outputs["executionArn"] = (
                f"arn:aws:execute-api:us-east-1:123456789012:{resource_id}"
            )
            outputs["apiEndpoint"] = (
                f"https://{resource_id}.execute-api.us-east-1.amazonaws.com"
            )
        if args.typ == "aws:s3/bucket:Bucket":
            outputs.setdefault("bucket", resource_id)
        return [resource_id, outputs]

    def call(self, args: pulumi.runtime.MockCallArgs):
        return {}

    def of_type(self, typ: str) -> List[pulumi.runtime.MockResourceArgs]:
        return [r for r in self.resources if r.typ == typ]

    def named(self, name: str) -> pulumi.runtime.MockResourceArgs:
        matches = [r for r in self.resources if r.name == name]
        assert len(matches) == 1, f"expected one resource named {name}, got {matches}"
        return matches[0]


@pytest.fixture
def pulumi_mocks() -> RecordingMocks:
    mocks = RecordingMocks()
    pulumi.runtime.set_mocks(mocks, project="lambda-topology", stack="test", preview=False)
    return mocks


@pytest.fixture
def run_program(pulumi_mocks) -> Callable[[Callable[[], Any]], None]:
    """Run a Pulumi program body and wait for every registration to finish."""

    def _run(program: Callable[[], Any]) -> None:
        @pulumi.runtime.test
        def _program():
            program()

        _program()

    return _run


@pytest.fixture
def handler_dir(tmp_path) -> Path:
    """A minimal handler source directory."""
    source = tmp_path / "app"
    source.mkdir()
    (source / "index.py").write_text("def handler(event, context):\n    return {}\n")
    return source


@pytest.fixture
def artifact(tmp_path) -> Path:
    """A built handler zip at the conventional dist/ location."""
    dist = tmp_path / "dist"
    dist.mkdir()
    path = dist / "index.zip"
    with zipfile.ZipFile(path, "w") as zipf:
        zipf.writestr("index.py", "def handler(event, context):\n    return {}\n")
    return path
