[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "armsim"
version = "0.1.0"
description = "A small simulator for 32-bit ARM programs loaded from ELF files"
requires-python = ">=3.10"
dependencies = []
keywords = ["arm", "simulator", "emulator", "elf", "cpu"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Emulators",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
armsim = "armsim.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["armsim"]

[tool.pytest.ini_options]
addopts = "-ra"
