#!/usr/bin/env python3
"""
KV-Wire Setup Script
====================
Allows installation of the kvwire package.

Usage:
    pip install -e .           # Development install
    pip install -e .[test]     # With test dependencies
    pip install .              # Regular install
"""

from setuptools import setup, find_packages

setup(
    name="kvwire",
    version="1.0.0",
    packages=find_packages(include=["kvwire", "kvwire.*"]),
    python_requires=">=3.10",
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
    entry_points={
        "console_scripts": [
            "kvwire=kvwire.cli:main",
            "kvwire-shell=kvwire.shell:main",
        ],
    },
)
