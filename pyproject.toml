[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mangostate"
version = "0.1.0"
description = "State model for a margin trading and perpetual futures engine: lending banks, caches, perp positions and account health"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "trading",
    "margin",
    "perpetuals",
    "fixed-point",
    "health",
    "lending",
    "interest",
    "funding",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Financial and Insurance Industry",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business :: Financial :: Investment",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["mangostate"]

[tool.pytest.ini_options]
addopts = "-ra"
