[build-system]
requires = ["hatchling>=1.18"]
build-backend = "hatchling.build"

[project]
name = "hezzlgoods"
version = "0.1.0"
description = "HTTP service for managing project goods, with a Redis cache and an event log shipped through NATS to ClickHouse"
requires-python = ">=3.10"
keywords = ["goods", "http", "flask", "sqlalchemy", "redis", "nats", "clickhouse"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Web Environment",
    "Framework :: Flask",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
    "Topic :: Database :: Front-Ends",
]
dependencies = [
    "flask>=2.3",
    "sqlalchemy>=2.0",
    "redis>=4.5",
    "httpx>=0.24",
]

[project.optional-dependencies]
test = [
    "pytest>=7.4",
    "respx>=0.20",
]

[project.scripts]
hezzlgoods = "hezzlgoods.app:main"

[tool.hatch.build.targets.wheel]
packages = ["hezzlgoods"]

[tool.hatch.build.targets.sdist]
include = ["hezzlgoods", "tests"]

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
