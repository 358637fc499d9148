[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sriovdp"
version = "0.1.0"
description = "SR-IOV network device discovery, selection and allocation for container device plugins"
requires-python = ">=3.10"
dependencies = []
keywords = ["sriov", "pci", "vfio", "uio", "device-plugin", "sysfs", "networking", "devlink"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Hardware",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["sriovdp"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
