[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "refinery"
version = "0.1.0"
description = "Building blocks for a trace-aware sampling proxy: trace cache, peer membership, logging and sampler configuration"
requires-python = ">=3.10"
dependencies = [
    "redis",
    "psutil",
]
keywords = ["tracing", "sampling", "proxy", "redis", "cluster", "membership"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: System :: Distributed Computing",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["refinery"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
