[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fakeclock"
version = "0.1.0"
description = "A clock abstraction with a real-time clock and a mock clock that moves only when told to, for testing time-based code."
requires-python = ">=3.10"
dependencies = []
keywords = ["clock", "time", "mock", "testing", "timer", "ticker", "deadline", "context"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Testing :: Mocking",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["fakeclock"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
