from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="zk-tickets",
    version="0.1.0",
    author="",
    author_email="",
    description="Anonymous one-time access tickets for registered groups (LeanIMT + nullifiers)",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Security :: Cryptography",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
    ],
    python_requires=">=3.9",
    install_requires=[
        "trio>=0.27.0",
        "cbor2>=5.6.0",
        "click>=8.1.0",
    ],
    extras_require={
        "dev": [
            "pytest>=8.0.0",
            "pytest-trio>=0.8.0",
            "black>=24.0.0",
            "flake8>=7.0.0",
            "mypy>=1.8.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "zk-tickets=zk_tickets.cli:main",
        ],
    },
)
