[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sacnview"
version = "0.1.0"
description = "Desktop viewer and sender for sACN (ANSI E1.31) DMX lighting data"
requires-python = ">=3.10"
keywords = ["sacn", "e131", "dmx", "lighting", "multicast", "monitoring", "tkinter"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: X11 Applications",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking :: Monitoring",
]
dependencies = [
    "platformdirs",
    "psutil",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
sacnview = "sacnview.app:main"

[tool.hatch.build.targets.wheel]
packages = ["sacnview"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
