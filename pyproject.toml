[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "imgtools"
version = "0.1.0"
description = "Web backend for an online image toolbox: IP visit control, in-memory static site serving, checkable task ids, download accounting and per-tool usage statistics."
requires-python = ">=3.10"
keywords = ["image", "tools", "flask", "ip-ban", "rate-limit", "static-files", "sqlite"]
classifiers = [
    "Development Status :: 4 - Beta",
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
    "Topic :: Internet :: WWW/HTTP :: Dynamic Content",
]
dependencies = [
    "flask",
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
imgtools = "imgtools.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["imgtools"]

[tool.hatch.build.targets.sdist]
include = ["imgtools", "tests"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"
