[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pgjobstore"
version = "0.2.0"
description = "Row models, NOTIFY payload decoding and a connection pool for a PostgreSQL-backed job queue."
requires-python = ">=3.10"
keywords = ["postgres", "jobs", "queue", "notify", "pool"]
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
dependencies = []

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["pgjobstore"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
