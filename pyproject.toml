[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "uarchsim"
version = "0.1.0"
description = "Instruction-stream tools for microarchitecture studies: a small LRU cache model, basic-block vectors, indirect-branch counts and ChampSim-style traces"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "cache",
    "simulation",
    "champsim",
    "simpoint",
    "basic-block-vector",
    "microarchitecture",
    "trace",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Emulators",
    "Topic :: Scientific/Engineering",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["uarchsim"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
