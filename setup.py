from setuptools import setup, find_packages

setup(
    name="memsync",
    version="0.1.0",
    description="MemSync - semantic memory store and calendar sync over a relational store and a vector index",
    author="Your Name",
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    install_requires=[
        # Core data modeling and validation
        "pydantic>=2.0.0",

        # Async HTTP client (embedding service, Google Calendar)
        "httpx>=0.25.0",

        # Environment variables
        "python-dotenv>=1.0.0",

        # Vector search
        "qdrant-client>=1.10.0",

        # Relational store
        "duckdb>=0.10.0",

        # Local sentence embeddings (alternative embedding provider)
        "sentence-transformers>=2.2.0",

        # CLI and rich output
        "typer>=0.9.0",
        "rich>=13.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "memsync = memsync.app.cli:main",
        ],
    },
    python_requires=">=3.11",
    package_dir={"": "."},
)
