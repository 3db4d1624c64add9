"""
RestGen - REST APIs from declared data schemas
Install: pip install -e .
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="restgen",
    version="1.0.0",
    author="Diegoproggramer",
    author_email="",
    description="Register a full REST API on FastAPI from JSON/YAML data schemas",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Framework :: FastAPI",
    ],
    python_requires=">=3.10",
    install_requires=[
        "fastapi>=0.100.0,<0.137",
        "uvicorn>=0.20.0",
        "sqlalchemy[asyncio]>=2.0.0",
        "pydantic>=2.0.0",
        "pyyaml>=6.0",
        "aiosqlite>=0.19.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "anyio>=3.7",
            "httpx>=0.24.0",
            "black>=23.0",
            "ruff>=0.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "restgen=restgen.cli:cli_main",
        ],
    },
    keywords="fastapi, rest, api, crud, schema, sqlalchemy, python",
)
