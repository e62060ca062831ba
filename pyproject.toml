[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "apicommon"
version = "1.0.4"
description = "Building blocks for plugin-based HTTP API services: declarative API handlers, a WSGI server built from plugins, access rules, label completion and signed subject files."
requires-python = ">=3.10"
keywords = [
    "wsgi",
    "plugins",
    "api",
    "middleware",
    "permissions",
    "access-control",
    "rsa-signature",
    "pem",
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
    "Topic :: Internet :: WWW/HTTP :: WSGI :: Application",
    "Topic :: Software Development :: Libraries :: Application Frameworks",
    "Typing :: Typed",
]
dependencies = [
    "pyyaml>=6.0",
    "cryptography>=41.0",
    "werkzeug>=3.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.4",
]

[tool.hatch.build.targets.wheel]
packages = ["apicommon"]

[tool.hatch.build.targets.sdist]
include = [
    "apicommon",
    "tests",
    "pyproject.toml",
    "README.md",
]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
ignore_missing_imports = true
