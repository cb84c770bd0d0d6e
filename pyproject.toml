[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "avrtoolkit"
version = "0.1.0"
description = "Host-side models of AVR firmware helpers and peripherals, with an SD card driver and a read-only FAT reader"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "avr",
    "embedded",
    "microcontroller",
    "simulation",
    "lfsr",
    "fat",
    "sd-card",
    "lcd",
    "hd44780",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Embedded Systems",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["avrtoolkit"]

[tool.hatch.build.targets.sdist]
include = ["avrtoolkit", "tests", "README.md", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
