"""
Setup script for the job referral service.

Allows development installation with `pip install -e .[test]`
"""

from setuptools import setup, find_packages

setup(
    name="job-referral-service",
    version="1.0.0",
    packages=find_packages(include=["jobref", "jobref.*", "referral_api", "referral_api.*"]),
    python_requires=">=3.11",
    install_requires=[
        "python-dotenv",
        "beautifulsoup4",
        "httpx",
        "playwright",
        "openai",
        "langchain-core",
        "langchain-openai",
        "pydantic>=2",
        "pydantic-settings",
        "fastapi",
        "uvicorn",
        "pymongo",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
            "httpx",
        ],
    },
    entry_points={
        "console_scripts": [
            "referral-api=referral_api.app:main",
        ],
    },
)
