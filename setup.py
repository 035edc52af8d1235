# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Setup configuration for the pkgrestore package restore client
"""

from setuptools import setup, find_packages

setup(
    name="pkgrestore",
    version="1.0.0",
    description="Layered configuration, package sources and transactional package restore",
    author="Jason Cafarelli",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2.0.0",
        "PyYAML>=6.0",
        "httpx>=0.25.0",
        "python-dotenv>=1.0.0",
        "cryptography>=41.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
        ]
    },
    entry_points={
        "console_scripts": [
            "pkgrestore=pkgrestore.cli:main",
        ]
    },
)
