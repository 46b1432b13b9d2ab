[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "memorage"
version = "0.1.0"
description = "Building blocks for encrypted peer-to-peer backups: indexing, encryption, wire protocol and persistent settings"
requires-python = ">=3.11"
keywords = ["backup", "peer-to-peer", "encryption", "xchacha20-poly1305", "ed25519", "blake3"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Archiving :: Backup",
    "Topic :: Security :: Cryptography",
]
dependencies = [
    "cryptography",
    "pycryptodome",
    "platformdirs",
    "tomli-w",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["memorage"]

[tool.hatch.build.targets.sdist]
include = ["memorage", "tests", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
warn_redundant_casts = true
