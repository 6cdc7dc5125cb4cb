[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "niku"
version = "0.1.0"
description = "Send files and folders between peers, found through a small discovery backend."
requires-python = ">=3.10"
keywords = ["file-sharing", "p2p", "transfer", "cli", "discovery", "zip"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Framework :: AsyncIO",
    "Framework :: aiohttp",
    "Intended Audience :: End Users/Desktop",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: File Sharing",
]
dependencies = [
    "aiohttp>=3.9",
    "platformdirs>=3.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.4",
    "pytest-asyncio>=0.23",
]

[project.scripts]
niku = "niku.cli:main"
niku-backend = "niku.server:main"

[tool.hatch.build.targets.wheel]
packages = ["niku"]

[tool.hatch.build.targets.sdist]
include = ["niku", "tests", "pyproject.toml", "README.md"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP", "SIM"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
