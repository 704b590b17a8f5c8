[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fanqueue"
version = "0.2.0"
description = "A bounded multi-producer, multi-consumer broadcast queue with per-stream consumer groups"
requires-python = ">=3.10"
dependencies = []
keywords = ["queue", "mpmc", "broadcast", "message", "concurrency", "threading"]
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
    "Topic :: Software Development :: Libraries",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
    "pytest-timeout",
]

[project.scripts]
fanqueue-demo = "fanqueue.demo:main"

[tool.hatch.build.targets.wheel]
packages = ["fanqueue"]

[tool.hatch.build.targets.sdist]
include = ["fanqueue", "tests", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
