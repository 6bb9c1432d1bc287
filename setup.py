# setup.py
from setuptools import setup, find_packages

setup(
    name="site_sync",
    version="0.1.0",
    description="Обнаружение страниц сайта и синхронизация инвентаря SiteSync",
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={"site_sync": ["templates/*.j2"]},
    install_requires=[
        "aiohttp>=3.9",
        "beautifulsoup4>=4.12",
        "lxml>=4.9",
        "pydantic>=2.0",
        "PyYAML>=6.0",
        "click>=8.1",
        "Jinja2>=3.1",
        "playwright>=1.40",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.21",
        ],
    },
    entry_points={
        "console_scripts": [
            "site-sync=site_sync.cli:cli",
        ],
    },
    python_requires=">=3.11",
)
