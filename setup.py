from setuptools import setup, find_packages

setup(
    name="sqledger",
    version="0.3.0",
    description="sqledger — keep a catalog of SQL scripts and run them from the terminal",
    packages=find_packages(exclude=["tests*", "*.egg-info"]),
    py_modules=["main", "config", "simple_cli"],
    package_data={"ui": ["*.tcss"]},
    python_requires=">=3.10",
    install_requires=[
        "textual>=0.48.0",
        "rich>=13.7.0",
        "psycopg2-binary>=2.9.9",
        "python-dotenv>=1.0.0",
        "pydantic>=2.5.0",
        "pydantic-settings>=2.1.0",
        "loguru>=0.7.2",
        "prompt_toolkit>=3.0.43",
        "click>=8.1.7",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "sqledger=main:cli",
        ],
    },
)
