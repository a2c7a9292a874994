"""Setup script for epclient."""

from setuptools import setup, find_packages

setup(
    name="epclient",
    version="0.1.0",
    description="Resilient data-access client for the European Parliament Open Data API",
    python_requires=">=3.11",
    packages=find_packages(include=["epclient", "epclient.*"]),
    install_requires=[
        "anyio>=4.0",
        "httpx>=0.27",
        "pydantic>=2.5",
        "pydantic-settings>=2.1",
        "python-dotenv>=1.0",
    ],
    extras_require={
        "http2": ["h2>=4.1"],
        "test": [
            "pytest>=8.0",
            "respx>=0.21",
        ],
    },
)
