"""
Setup script for simple-words-bot.

The drill engine behind a vocabulary practice chat bot. It serves three roles:

1. Task Catalog - Deduplicated exercise store loaded from YAML task groups
2. Scheduler - One outstanding exercise per chat, spaced-repetition ordering
3. Answer Log - Append-only graded history per user

The 'wordsbot' command is the operator entry point.
"""

from setuptools import find_packages, setup

setup(
    name="simple-words-bot",
    version="0.3.0",
    description="Catalog and scheduling engine for a vocabulary drill chat bot",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(include=["wordsbot", "wordsbot.*"]),
    package_data={"wordsbot.db": ["migrations/*.sql"]},
    python_requires=">=3.11",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy>=2.0.0,<2.1",
        "psycopg2-binary>=2.9.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # Content
        "pyyaml>=6.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "wordsbot=wordsbot.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Education",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="learning spaced-repetition vocabulary chat-bot education",
)
