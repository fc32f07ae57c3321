[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "chipeight"
version = "0.1.0"
description = "A CHIP-8 virtual machine with a pygame front end"
requires-python = ">=3.10"
keywords = ["chip-8", "chip8", "emulator", "virtual machine", "retro"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: End Users/Desktop",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Games/Entertainment",
    "Topic :: System :: Emulators",
]
dependencies = [
    "pygame",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
chipeight = "chipeight.app:main"

[tool.hatch.build.targets.wheel]
packages = ["chipeight"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
