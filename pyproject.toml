[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "vectordsp"
version = "0.1.0"
description = "Block-based audio DSP building blocks: ring buffers, filters, delays, resamplers and interned symbols."
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = ["dsp", "audio", "filters", "delay", "resampling", "ring buffer", "envelope"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
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
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["vectordsp"]

[tool.pytest.ini_options]
addopts = "-ra"
