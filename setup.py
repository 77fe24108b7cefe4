"""
Setup script for Star Script
"""
from setuptools import setup, find_packages

setup(
    name="star_script",
    version="1.0.0",
    description="Pine-like indicator & strategy scripting: parser, runtime, transpiler",
    author="Anirudha Talmale",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "pandas>=1.5.0",
        "numpy>=1.23.0",
        "pyyaml>=6.0",
        "loguru>=0.6.0",
        "lark>=1.1.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "star-transpile=star_script.main:main",
            "star-conformance=star_script.main:conformance",
        ],
    },
)
