[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "bdstore"
version = "0.1.0"
description = "Height-aware SQLite storage of staking, slashing and validator data for a chain indexer"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "blockchain",
    "indexer",
    "staking",
    "validators",
    "delegations",
    "slashing",
    "sqlite",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["bdstore"]

[tool.hatch.build.targets.sdist]
include = ["bdstore", "tests"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
