[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "hmiaudio"
version = "0.1.0"
description = "Alarm filters, tag and alarm dispatching and asynchronous actions for HMI audio servers"
requires-python = ">=3.10"
dependencies = []
keywords = ["hmi", "alarms", "alarm filter", "tags", "audio", "asyncio", "automation"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Manufacturing",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: AsyncIO",
    "Topic :: Scientific/Engineering :: Human Machine Interfaces",
]

[project.optional-dependencies]
test = ["pytest", "pytest-asyncio"]

[tool.hatch.build.targets.wheel]
packages = ["hmiaudio"]

[tool.pytest.ini_options]
addopts = "-ra"
