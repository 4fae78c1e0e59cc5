"""
Build Lambda zip artifacts into ``dist/``.

Usage:
    python -m lambda_topology.build lambda_topology/handlers --package
    python -m lambda_topology.build path/to/handler_dir --dist dist --name api

``--package`` keeps the directory name as a top-level folder inside the zip,
so a handler such as ``handlers.api_handler.handler`` resolves at runtime.
"""

import argparse
import logging
import sys
import zipfile
from pathlib import Path
from typing import List, Optional, Union

from lambda_topology.packaging import EXCLUDE_DIRS

logger = logging.getLogger(__name__)

# Fixed timestamp so rebuilding unchanged sources yields identical bytes
_ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)


def _collect_files(source: Path) -> List[Path]:
    files = []
    for path in source.rglob("*"):
        if not path.is_file():
            continue
        rel_parts = path.relative_to(source).parts
        if any(part in EXCLUDE_DIRS for part in rel_parts):
            continue
        if path.suffix in (".pyc", ".pyo"):
            continue
        files.append(path)
    return sorted(files)


def build_artifact(
    source: Union[str, Path],
    dist_dir: Union[str, Path] = "dist",
    name: Optional[str] = None,
    package: bool = False,
) -> Path:
    """
    Zip a handler directory into ``<dist_dir>/<name>.zip``.

    Args:
        source: Directory holding the handler sources.
        dist_dir: Output directory, created when missing.
        name: Artifact stem. Defaults to the source directory name.
        package: Place entries under ``<source dir name>/`` in the zip.

    Returns:
        Path of the written zip.

    Raises:
        FileNotFoundError: If ``source`` is not a directory.
    """
    source_dir = Path(source)
    if not source_dir.is_dir():
        raise FileNotFoundError(f"Handler source directory not found: {source_dir}")

    dist = Path(dist_dir)
    dist.mkdir(parents=True, exist_ok=True)
    artifact = dist / f"{name or source_dir.name}.zip"
    prefix = Path(source_dir.name) if package else Path()

    files = _collect_files(source_dir)
    with zipfile.ZipFile(artifact, "w", zipfile.ZIP_DEFLATED) as zipf:
        for file_path in files:
            arcname = (prefix / file_path.relative_to(source_dir)).as_posix()
            info = zipfile.ZipInfo(arcname, date_time=_ZIP_EPOCH)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = 0o644 << 16
            zipf.writestr(info, file_path.read_bytes())

    logger.info("Built %s (%d files)", artifact, len(files))
    return artifact


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Zip a Lambda handler directory into dist/<name>.zip"
    )
    parser.add_argument("source", help="Handler source directory")
    parser.add_argument(
        "--dist", default="dist", help="Output directory (default: dist)"
    )
    parser.add_argument(
        "--name", help="Artifact name without .zip (default: source dir name)"
    )
    parser.add_argument(
        "--package",
        action="store_true",
        help="Keep the source directory as a top-level folder in the zip",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(message)s",
    )

    try:
        artifact = build_artifact(
            args.source, args.dist, name=args.name, package=args.package
        )
    except FileNotFoundError as e:
        logger.error("%s", e)
        return 1

    print(artifact)
    return 0


if __name__ == "__main__":
    sys.exit(main())
