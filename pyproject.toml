[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "datapull"
version = "0.1.0"
description = "Pull-job and pull-table metadata, run logs, paged queries and ClickHouse column buffers"
requires-python = ">=3.10"
dependencies = [
    "msgpack",
]
keywords = ["etl", "clickhouse", "data-pull", "metadata", "sqlite"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Database",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["datapull"]

[tool.pytest.ini_options]
addopts = "-ra"
