[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "shpool"
version = "0.1.0"
description = "Building blocks for a persistent shell session pool: config loading and watching, keybindings, prompt injection and /etc/environment parsing"
requires-python = ">=3.11"
keywords = ["shell", "terminal", "session", "keybindings", "config", "watcher"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Terminals",
]
dependencies = [
    "watchdog",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["shpool"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
