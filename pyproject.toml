[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gridspace"
version = "0.1.0"
description = "Integer grid cells, spatial hashing, partitioning and hierarchy validation for high-precision worlds"
requires-python = ">=3.10"
dependencies = []
keywords = ["spatial hash", "grid", "floating origin", "partition", "hierarchy validation"]
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
    "Topic :: Games/Entertainment :: Simulation",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["gridspace"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
