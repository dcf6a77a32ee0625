"""
Setup script for cardgraph.

cardgraph builds a semantic relationship graph over a flashcard collection:

1. KNN Index - Exact top-K cosine neighbors over pre-computed embeddings,
   cached under a signature of the card set
2. Edge Labeling - Relation labels (prerequisite-of, duplicate-of, ...)
   assigned by an OpenAI-compatible chat endpoint, cached per model

The 'cardgraph' command is the primary entry point.
"""

from setuptools import find_packages, setup

setup(
    name="cardgraph",
    version="1.0.0",
    description="Semantic relationship graph builder for flashcard collections",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="Right Learning",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy>=2.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # HTTP
        "httpx>=0.25.0",
        # Numerics
        "numpy>=1.24.0",
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
            "cardgraph=cardgraph.cli:main",
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
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="flashcards knn embeddings knowledge-graph spaced-repetition",
)
