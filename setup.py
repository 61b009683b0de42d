"""Setup configuration for the Ephemeral Room Relay."""

from setuptools import setup, find_packages

setup(
    name="ephemeral-room-relay",
    version="0.1.0",
    description="A real-time room-based messaging relay with ephemeral attachments",
    author="Ephemeral Room Relay Team",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.9",
    install_requires=[
        "websockets>=12.0",
        "fastapi>=0.110.0",
        "uvicorn>=0.29.0",
        "python-multipart>=0.0.9",
        "httpx>=0.27.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "relay-server=relay.main:main",
            "relay-client=relay_client.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
