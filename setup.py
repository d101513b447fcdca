"""
ggwave-safe - Safe Python layer for the ggwave data-over-sound engine.

Installs the ggwave_safe package and the ggwave-encode / ggwave-decode
commands. Runtime dependencies come from requirements.txt.
"""

from pathlib import Path
from setuptools import setup, find_packages

# Read README
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding='utf-8') if readme_file.exists() else ""

# Read requirements
requirements_file = Path(__file__).parent / "requirements.txt"
requirements = []
if requirements_file.exists():
    requirements = [
        line.strip()
        for line in requirements_file.read_text(encoding='utf-8').splitlines()
        if line.strip() and not line.startswith("#")
    ]

setup(
    name="ggwave-safe",
    version="0.2.0",
    description="Safe resource management and data pipelines for the ggwave sound codec",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="ggwave-safe Contributors",
    license="MIT",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=requirements,
    python_requires=">=3.10",
    entry_points={
        "console_scripts": [
            "ggwave-encode=ggwave_safe.cli:encode_main",
            "ggwave-decode=ggwave_safe.cli:decode_main",
        ],
    },
    extras_require={
        "test": ["pytest>=7.0"],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Multimedia :: Sound/Audio",
        "Topic :: System :: Networking",
    ],
)
