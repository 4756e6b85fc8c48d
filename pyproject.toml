[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "xvsim"
version = "0.1.0"
description = "In-memory model of a small teaching kernel's file system, buffer cache, redo log, pipes and user tools"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "filesystem",
    "buffer-cache",
    "write-ahead-log",
    "inode",
    "disk-image",
    "teaching",
    "operating-system",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Education",
    "Topic :: System :: Filesystems",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
xvsim-grep = "xvsim.grep:main"
xvsim-mkfs = "xvsim.mkfs:main"
xvsim-tools = "xvsim.tools:main"

[tool.hatch.build.targets.wheel]
packages = ["xvsim"]

[tool.hatch.build.targets.sdist]
include = ["xvsim", "tests", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
