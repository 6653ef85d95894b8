[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ferrisbot"
version = "0.1.0"
description = "Command logic for a chat bot serving Rust communities: crate and documentation lookup, Godbolt and playground integration."
requires-python = ">=3.11"
keywords = ["discord", "bot", "rust", "playground", "godbolt", "crates", "docs"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: AsyncIO",
    "Topic :: Communications :: Chat",
    "Typing :: Typed",
]
dependencies = [
    "httpx",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["ferrisbot"]

[tool.hatch.build.targets.sdist]
include = ["ferrisbot", "tests"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
warn_redundant_casts = true
