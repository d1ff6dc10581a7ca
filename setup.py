"""Flash wallet client setup."""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="flashwallet",
    version="0.1.0",
    packages=find_packages(include=["flashwallet", "flashwallet.*"]),
    install_requires=[
        "requests>=2.28.0",
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "flashwallet=flashwallet.__main__:main",
        ],
    },
    python_requires=">=3.9",
    author="Flash",
    author_email="",
    description="Flash wallet client - phone login, transfers, bank settlement and top-up",
    long_description=long_description,
    long_description_content_type="text/markdown",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Office/Business :: Financial",
    ],
    keywords="flash, wallet, payments, graphql, sdk",
)
