"""
Code packaging for Lambda functions.

- Inline archives built from a local directory
- Zip artifacts uploaded to S3, into a dedicated code bucket or an existing one
- Deterministic content hashing for change detection
"""

from __future__ import annotations

import base64
import hashlib
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Sequence, Union

import pulumi
import pulumi_aws as aws
from pulumi import AssetArchive, FileArchive, FileAsset, Output, ResourceOptions

from lambda_topology.errors import ArtifactNotFoundError, InvalidConfigError

# Common exclude directories when hashing or zipping
EXCLUDE_DIRS = {
    ".git",
    ".mypy_cache",
    ".pytest_cache",
    ".venv",
    "__pycache__",
}


@dataclass
class PackagedCode:
    """
    Code for exactly one function: an inline archive or an S3 reference.

    ``s3_bucket``/``s3_key`` are deferred values populated by the upload.
    """

    archive: Optional[pulumi.Archive] = None
    s3_bucket: Optional[pulumi.Input[str]] = None
    s3_key: Optional[pulumi.Input[str]] = None
    source_code_hash: Optional[str] = None
    upload: Optional[aws.s3.BucketObjectv2] = None

    def __post_init__(self):
        has_archive = self.archive is not None
        has_object = self.s3_bucket is not None or self.s3_key is not None
        if has_archive == has_object:
            raise InvalidConfigError(
                "Packaged code needs exactly one of an inline archive "
                "or an S3 bucket/key"
            )
        if has_object and (self.s3_bucket is None or self.s3_key is None):
            raise InvalidConfigError("S3 code needs both a bucket and a key")

    @property
    def is_inline(self) -> bool:
        return self.archive is not None


def _iter_files(
    roots: Sequence[Path],
    exclude_dirs: Optional[Iterable[str]] = None,
) -> Iterable[Path]:
    """Yield files under roots, skipping excluded directories."""
    exclude_dirs_set = set(exclude_dirs or EXCLUDE_DIRS)
    for root in roots:
        if root.is_file():
            yield root
            continue
        for path in root.rglob("*"):
            if not path.is_file():
                continue
            rel_parts = path.relative_to(root).parts
            if any(part in exclude_dirs_set for part in rel_parts):
                continue
            if path.suffix in (".pyc", ".pyo"):
                continue
            yield path


def compute_hash(paths: Sequence[Union[str, Path]]) -> str:
    """
    Compute a deterministic SHA256 hash for the given files or directories.

    Missing paths are ignored. Relative file names are part of the digest so
    renames change the hash.
    """
    hash_obj = hashlib.sha256()
    roots: List[Path] = [Path(p) for p in paths if Path(p).exists()]
    for root in roots:
        for file_path in sorted(_iter_files([root])):
            with open(file_path, "rb") as handle:
                hash_obj.update(handle.read())
            if root.is_dir():
                hash_obj.update(str(file_path.relative_to(root)).encode())
            else:
                hash_obj.update(file_path.name.encode())
    return hash_obj.hexdigest()


def file_source_code_hash(path: Union[str, Path]) -> str:
    """Base64 SHA256 of a file, the format Lambda reports as CodeSha256."""
    digest = hashlib.sha256(Path(path).read_bytes()).digest()
    return base64.b64encode(digest).decode()


def handler_file_name(handler: str) -> str:
    """
    Return the file stem of a handler reference.

    ``index.handler`` -> ``index``; ``handlers.api_handler.handler`` ->
    ``api_handler``.
    """
    module = handler.rsplit(".", 1)[0]
    return module.replace("/", ".").rsplit(".", 1)[-1]


def find_project_root(start: Optional[Union[str, Path]] = None) -> Path:
    """Walk up from ``start`` (or the cwd) to the directory holding setup.py."""
    current_dir = Path(start or os.getcwd()).resolve()
    root_markers = ["setup.py", "pyproject.toml", ".git"]
    for parent in [current_dir, *current_dir.parents]:
        if any((parent / marker).exists() for marker in root_markers):
            return parent
    return current_dir


def default_artifact_path(
    handler: str, project_root: Optional[Union[str, Path]] = None
) -> Path:
    """``<project_root>/dist/<handler file>.zip``"""
    root = Path(project_root) if project_root else find_project_root()
    return root / "dist" / f"{handler_file_name(handler)}.zip"


def resolve_artifact(path: Union[str, Path]) -> Path:
    """
    Return the artifact path if it exists on disk.

    Raises:
        ArtifactNotFoundError: If the artifact has not been built.
    """
    artifact = Path(path)
    if not artifact.is_file():
        raise ArtifactNotFoundError(artifact)
    return artifact


def inline_code(path: Union[str, Path]) -> PackagedCode:
    """Archive a local directory (or zip) as inline function code."""
    source = Path(path)
    if not source.exists():
        raise ArtifactNotFoundError(source)
    return PackagedCode(
        archive=AssetArchive({".": FileArchive(str(source))}),
    )


def declare_code_bucket(
    name: str,
    *,
    tags: Optional[Mapping[str, str]] = None,
    opts: Optional[ResourceOptions] = None,
) -> aws.s3.Bucket:
    """
    Create a dedicated bucket for Lambda artifacts.

    Versioned, AES256-encrypted and closed to public access.
    """
    bucket = aws.s3.Bucket(
        f"{name}-code-bucket",
        force_destroy=True,
        tags=tags,
        opts=opts,
    )
    child_opts = ResourceOptions(parent=bucket)

    aws.s3.BucketVersioningV2(
        f"{name}-code-bucket-versioning",
        bucket=bucket.id,
        versioning_configuration=aws.s3.BucketVersioningV2VersioningConfigurationArgs(
            status="Enabled"
        ),
        opts=child_opts,
    )
    aws.s3.BucketServerSideEncryptionConfigurationV2(
        f"{name}-code-bucket-encryption",
        bucket=bucket.id,
        rules=[
            aws.s3.BucketServerSideEncryptionConfigurationV2RuleArgs(
                apply_server_side_encryption_by_default=aws.s3.BucketServerSideEncryptionConfigurationV2RuleApplyServerSideEncryptionByDefaultArgs(
                    sse_algorithm="AES256"
                )
            )
        ],
        opts=child_opts,
    )
    aws.s3.BucketPublicAccessBlock(
        f"{name}-code-bucket-pab",
        bucket=bucket.id,
        block_public_acls=True,
        block_public_policy=True,
        ignore_public_acls=True,
        restrict_public_buckets=True,
        opts=child_opts,
    )
    return bucket


def lookup_code_bucket(
    name: str, bucket_name: str, opts: Optional[ResourceOptions] = None
) -> aws.s3.Bucket:
    """Reference an existing bucket by name without managing it."""
    return aws.s3.Bucket.get(f"{name}-code-bucket", bucket_name, opts=opts)


def upload_artifact(
    name: str,
    artifact_path: Union[str, Path],
    bucket: pulumi.Input[str],
    key: str,
    *,
    tags: Optional[Mapping[str, str]] = None,
    opts: Optional[ResourceOptions] = None,
) -> PackagedCode:
    """
    Upload a built zip to S3 and return the bucket/key reference.

    The artifact is checked before anything is declared.
    """
    artifact = resolve_artifact(artifact_path)
    content_hash = compute_hash([artifact])

    obj = aws.s3.BucketObjectv2(
        f"{name}-code",
        bucket=bucket,
        key=key,
        source=FileAsset(str(artifact)),
        source_hash=content_hash,
        tags=tags,
        opts=opts,
    )
    return PackagedCode(
        s3_bucket=Output.from_input(bucket),
        s3_key=obj.key,
        source_code_hash=file_source_code_hash(artifact),
        upload=obj,
    )
