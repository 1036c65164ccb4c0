"""
scrcpy-mirror - H.264 screen mirroring pipeline
Annex-B parsing, access-unit assembly and low-latency decoding of an Android screen stream.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read version from __init__.py
version_file = Path(__file__).parent / "scrcpy_mirror" / "__init__.py"
version_content = version_file.read_text()
version_line = [
    line for line in version_content.split("\n") if line.startswith("__version__")
]
if version_line:
    version = version_line[0].split("=")[1].strip().strip('"')
else:
    version = "0.1.0"

# Read README for long description
readme_file = Path(__file__).parent / "README.md"
if readme_file.exists():
    long_description = readme_file.read_text()
else:
    long_description = "H.264 screen mirroring pipeline for scrcpy streams"

setup(
    name="scrcpy-mirror",
    version=version,
    description="Annex-B H.264 parsing and low-latency decoding for scrcpy screen mirroring",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests*", "examples*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Operating System :: OS Independent",
        "Topic :: Multimedia :: Video :: Display",
    ],
    python_requires=">=3.9",
    install_requires=[
        "av>=13.0.0",
        "numpy>=1.24.0",
    ],
    extras_require={
        "dev": [
            "pytest>=8.0.0",
            "black>=24.0.0",
            "mypy>=1.8.0",
        ],
        "test": [
            "pytest>=8.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "scrcpy-mirror=scrcpy_mirror.cli:main",
        ],
    },
)
