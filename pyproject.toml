[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "eifatrigger"
version = "0.0.1"
description = "Restart Deployments and DaemonSets when the ConfigMaps or Secrets they depend on change"
requires-python = ">=3.10"
dependencies = []
keywords = ["kubernetes", "operator", "configmap", "secret", "rollout", "restart", "reconciler"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["eifatrigger"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
