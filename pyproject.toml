[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "celtcore"
version = "0.1.0"
description = "Fixed-point arithmetic, bit allocation, energy quantisation and pulse-vector quantisation building blocks of a low-delay audio codec"
requires-python = ">=3.10"
dependencies = []
keywords = ["audio", "codec", "fixed-point", "quantisation", "bit allocation", "pvq"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Multimedia :: Sound/Audio",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest", "hypothesis"]

[tool.hatch.build.targets.wheel]
packages = ["celtcore"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
