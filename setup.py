"""
Setup script for adaptive-assessment-core.

The assessment core holds the policy engines behind exam delivery:

1. Rule Resolver - effective selection rules and quiz controls per assessment
2. Adaptive Selection Engine - question sampling under difficulty and mastery constraints
3. Integrity Monitor - proctoring signals, violation accounting and escalation
4. Review Scheduler - SM-2 spaced repetition for learned items

The 'assessment' command exposes each engine from the terminal.
"""

from setuptools import find_packages, setup

setup(
    name="adaptive-assessment-core",
    version="1.0.0",
    description="Policy engines for adaptive, proctored exam delivery",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(include=["assessment_core", "assessment_core.*"]),
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # HTTP
        "httpx>=0.25.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "assessment=assessment_core.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Intended Audience :: Education",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Testing",
    ],
    keywords="assessment adaptive-testing proctoring spaced-repetition",
)
