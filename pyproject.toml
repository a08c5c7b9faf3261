[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "microws"
version = "0.1.0"
description = "Building blocks for a small HTTP and WebSocket server: router, incremental HTTP parser, PROXY v2 parser, pub/sub topic tree and event loop core"
requires-python = ">=3.10"
dependencies = []
keywords = ["http", "websocket", "router", "parser", "pubsub", "proxy-protocol"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["microws"]

[tool.pytest.ini_options]
addopts = "-ra"
