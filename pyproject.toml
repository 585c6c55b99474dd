[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fakes3kit"
version = "0.1.0"
description = "Building blocks for a fake S3 service: prefix matching, byte ranges, routing, validation and in-memory multipart uploads"
requires-python = ">=3.10"
keywords = ["s3", "fake", "mock", "testing", "multipart", "object-storage"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Software Development :: Testing :: Mocking",
]
dependencies = [
    "sortedcontainers",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["fakes3kit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
