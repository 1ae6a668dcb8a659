import os
from setuptools import setup, find_packages

setup(
    name="llmgate",
    version="1.0.0",
    description="llmgate — one text generation API over Ollama, llama.cpp, Hugging Face and OpenAI backends",
    long_description=open("README.md").read() if os.path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="llmgate contributors",
    packages=find_packages(include=["llmgate", "llmgate.*"]),
    install_requires=[
        "httpx>=0.24.0",
        "click>=8.0.0",
        "pydantic>=2.0.0",
        "fastapi>=0.100.0",
        "uvicorn[standard]>=0.20.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "pytest-asyncio>=0.21.0",
        ],
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "pytest-asyncio>=0.21.0",
            "ruff>=0.4.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "llmgate=llmgate.cli:main",
        ],
    },
    python_requires=">=3.9",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
