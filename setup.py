from setuptools import find_packages, setup
import re
import os

# Read version from version.py without importing the package
version_file = os.path.join("lambda_topology", "version.py")
with open(version_file, "r") as f:
    version_content = f.read()

version_match = re.search(r'__version__\s*=\s*["\']([^"\']+)["\']', version_content)
if not version_match:
    raise RuntimeError(f"Unable to find version string in {version_file}")
version = version_match.group(1)

setup(
    name="lambda-topology",
    version=version,
    packages=find_packages(include=["lambda_topology", "lambda_topology.*"]),
    install_requires=[
        "pulumi>=3.0.0,<4.0.0",
        "pulumi-aws>=6.0.0",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-mock",
            "pytest-cov",
        ]
    },
    entry_points={
        "console_scripts": [
            "lambda-topology-build=lambda_topology.build:main",
        ],
    },
    python_requires=">=3.9",
)
