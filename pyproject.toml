[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tinylsm"
version = "0.1.0"
description = "Building blocks of a small LSM-tree key-value store and a Redis-protocol request layer"
requires-python = ">=3.11"
dependencies = [
    "tomli-w",
]
keywords = [
    "lsm",
    "lsm-tree",
    "key-value",
    "storage-engine",
    "mvcc",
    "block-cache",
    "redis",
    "resp",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database :: Database Engines/Servers",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["tinylsm"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py311"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
warn_redundant_casts = true
