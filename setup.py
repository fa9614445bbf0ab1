"""offlinekit setup - offline-resilient record storage."""
from setuptools import setup, find_packages

setup(
    name="offlinekit",
    version="0.1.0",
    description="offlinekit: offline-resilient persistence with identity-scoped pending queues",
    package_dir={"": "src"},
    packages=find_packages("src"),
    python_requires=">=3.10",
    install_requires=[
        "click>=8.0",
        "httpx>=0.24",
        "blake3>=0.3",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "offlinekit=offlinekit.cli.main:cli",
        ],
    },
)
