# setup.py
from setuptools import setup, find_packages

setup(
    name="service_registry",
    version="1.0.0",
    description="Service registry: endpoint registration, health status and discovery",
    packages=find_packages(
        exclude=(
            "tests",
            "tests.*",
            "docs",
            "build",
            "dist",
        )
    ),
    python_requires=">=3.10",
    install_requires=[
        "fastapi>=0.100",
        "pydantic>=2",
        "uvicorn>=0.23",
        "requests>=2.28",
    ],
    extras_require={
        "postgres": ["psycopg2-binary>=2.9"],
        "test": ["pytest>=7", "httpx>=0.24"],
    },
    entry_points={
        "console_scripts": [
            "service-registry=service_registry.__main__:main",
        ],
    },
)
