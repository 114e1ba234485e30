[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "wgnoise"
version = "0.1.0"
description = "WireGuard data-path building blocks: packet parsing, transport sessions, replay protection, handshake rate limiting and a UDP socket wrapper"
requires-python = ">=3.10"
keywords = ["wireguard", "vpn", "tunnel", "udp", "chacha20poly1305", "replay-protection"]
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
    "Topic :: Security :: Cryptography",
]
dependencies = [
    "pynacl",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["wgnoise"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
