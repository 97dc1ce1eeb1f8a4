"""
Setup script for lp-rebalancer.
"""

from setuptools import setup, find_packages

setup(
    name="lp-rebalancer",
    version="0.1.0",
    description="Concentrated liquidity position rebalancing engine",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.10",
    install_requires=[
        "pydantic>=2.0",
        "numpy>=1.24",
        "pandas>=2.0",
        "click>=8.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
    entry_points={
        "console_scripts": [
            "lp-rebalancer=lp_rebalancer.main:cli",
        ],
    },
)
