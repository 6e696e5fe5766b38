[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "muco"
version = "0.1.0"
description = "Relay server, headset manager, photo upload server and traffic replay tools for multi-user sessions on a local network"
requires-python = ">=3.10"
keywords = ["relay", "multiplayer", "headset", "mdns", "websocket", "binary-protocol"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Framework :: AsyncIO",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]
dependencies = [
    "aiohttp",
    "dnspython",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
muco-server = "muco.server_main:main"
muco-photo-server = "muco.photo_server:main"
muco-manager = "muco.manager_main:main"
muco-emulator = "muco.emulator:main"

[tool.hatch.build.targets.wheel]
packages = ["muco"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
