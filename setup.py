# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Setup configuration for the criage package management agent
"""

from setuptools import setup, find_packages

setup(
    name="criage-agent",
    version="1.0.0",
    description="Package manager agent with prioritized remote repositories",
    author="Jason Cafarelli",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.11.4",
    install_requires=[
        "httpx>=0.25.0",
        "pydantic>=2.0.0",
        "PyYAML>=6.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
        ]
    },
)
