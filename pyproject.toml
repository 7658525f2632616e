[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fxconfig"
version = "0.1.0"
description = "Configuration loading, validation and namespace transaction building for Fabric-X administration"
requires-python = ">=3.10"
keywords = ["fabric-x", "namespace", "policy", "endorsement", "configuration"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
]
dependencies = [
    "pyyaml",
    "cryptography",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["fxconfig"]

[tool.pytest.ini_options]
addopts = "-ra"
