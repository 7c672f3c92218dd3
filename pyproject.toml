[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "nextgen"
version = "0.1.0"
description = "Building blocks for a fuzz tester: shared memory pools, a loopback socket server, a plugin registry, file mutators and resource pools."
requires-python = ">=3.10"
dependencies = []
keywords = ["fuzzing", "testing", "mutation", "resource-pool", "shared-memory"]
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
    "Topic :: Software Development :: Testing",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["nextgen"]

[tool.pytest.ini_options]
addopts = "-ra"
