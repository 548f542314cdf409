[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "flute"
version = "0.1.0"
description = "A reactor-style event loop networking library with TCP connections, a UDP server, timers and byte buffers"
requires-python = ">=3.10"
dependencies = []
keywords = ["networking", "event loop", "reactor", "tcp", "udp", "non-blocking", "buffer", "timer"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-timeout",
]

[tool.hatch.build.targets.wheel]
packages = ["flute"]

[tool.pytest.ini_options]
addopts = "-ra"
