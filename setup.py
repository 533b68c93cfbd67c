from setuptools import setup, find_packages

setup(
    name="mangapost-dashboard",
    version="1.0.0",
    description="Private admin dashboard that publishes manga release posts to a Telegram channel",
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    package_data={"mangapost": ["web/templates/*.html"]},
    install_requires=[
        "aiohttp>=3.9",
        "python-dotenv>=1.0",
        "aiogram>=3.23.0",
        "SQLAlchemy>=2.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.3",
            "pytest-asyncio>=0.21.1",
        ],
    },
    entry_points={
        "console_scripts": [
            "mangapost=mangapost.main:run",
            "mangapost-cli=mangapost.cli:run",
        ]
    },
    python_requires=">=3.10",
)
