[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sunxikit"
version = "0.1.0"
description = "Tools for Allwinner SoC boards: FEX/script.bin conversion, PIO register dumps, Phoenix card images and SoC data"
requires-python = ">=3.10"
dependencies = []
keywords = ["allwinner", "sunxi", "fex", "script.bin", "gpio", "pio", "phoenix", "u-boot"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Embedded Systems",
    "Topic :: Utilities",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
sunxikit-pio = "sunxikit.pio:main"
sunxikit-phoenix-info = "sunxikit.phoenix:main"

[tool.hatch.build.targets.wheel]
packages = ["sunxikit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
