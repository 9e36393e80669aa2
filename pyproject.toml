[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fireup"
version = "0.4.0"
description = "Prepare root filesystems and start Firecracker microVMs with a single command"
requires-python = ">=3.11"
keywords = ["firecracker", "microvm", "kvm", "virtualization", "rootfs"]
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
    "Topic :: System :: Emulators",
]
dependencies = [
    "termcolor",
    "tomli-w",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
fireup = "fireup.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["fireup"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
