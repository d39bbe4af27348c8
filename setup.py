"""Setup configuration for the Goat Gang community bot."""

from setuptools import setup, find_packages

setup(
    name="goatbot",
    version="0.1.0",
    description="Discord community bot that mirrors RSS, YouTube and Reddit feeds into guild channels",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "py-cord>=2.5",
        "aiohttp>=3.9",
        "aiosqlite>=0.19",
        "feedparser>=6.0",
        "PyYAML>=6.0",
        "python-dotenv>=1.0",
        "prompt_toolkit>=3.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "goatbot=goatbot.main:main",
        ],
    },
)
