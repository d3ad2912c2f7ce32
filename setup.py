"""Setup configuration for Lobbycord Discord Bot."""

from setuptools import setup, find_packages

setup(
    name="lobbycord",
    version="0.1.0",
    description="A Discord bot for self-service voice rooms and birthday announcements",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "py-cord>=2.6",
        "aiosqlite>=0.19",
        "python-dotenv>=1.0",
        "PyYAML>=6.0",
        "prompt_toolkit>=3.0",
        "croniter>=2.0.6",
        "tzdata>=2024.1",
    ],
    extras_require={
        "test": ["pytest>=8.0", "pytest-asyncio>=0.23"],
    },
    entry_points={
        "console_scripts": [
            "lobbycord=lobbycord.main:main",
        ],
    },
)
