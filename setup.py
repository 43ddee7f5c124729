"""Setup script for the Rugved chat client."""

from setuptools import setup, find_packages

setup(
    name="rugved",
    version="1.0.0",
    description="Text and voice chat with Gemini from the terminal",
    author="Rugved AI",
    packages=find_packages(include=['rugved', 'rugved.*', 'mocks', 'mocks.*']),
    python_requires=">=3.11",
    install_requires=[
        "python-dotenv>=1.0.0",
        "google-generativeai>=0.3.0",
        "google-api-core>=2.0.0",
        "elevenlabs>=2.0.0",
        "pygame>=2.5.0",
        "structlog>=23.0.0",
        "click>=8.0.0",
        "numpy>=1.24.0",
        "sounddevice>=0.4.6",
        "soundfile>=0.12.0",
        "webrtcvad-wheels>=2.0.10",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "rugved=rugved.cli.main:cli",
        ],
    },
)
