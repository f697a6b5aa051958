# setup.py
from setuptools import setup, find_packages

setup(
    name="studio_graph",
    version="0.1.0",
    description="Force-directed layout and graph analytics engine for the Database Studio graph explorer",
    author="Swift Fox",
    packages=find_packages(
        exclude=(
            "tests",
            "tests.*",
            "docs",
            "build",
            "dist",
        )
    ),
    install_requires=[
        "numpy>=1.24",
        "networkx>=3.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    python_requires=">=3.10",
)
