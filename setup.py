from setuptools import setup, find_packages

setup(
    name="nl2sql",
    version="0.1.0",
    description="Natural language to SQL with a local Ollama model and rule-based fallback",
    python_requires=">=3.10",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "ollama>=0.4.0",
        "httpx>=0.24.0",
        "sqlglot>=18.0.0",
        "sqlalchemy>=2.0.0",
        "pymssql>=2.2.0",
        "pymysql>=1.0.0",
        "psycopg2-binary>=2.9.0",
        "fastapi>=0.100.0",
        "uvicorn>=0.20.0",
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "python-dotenv>=1.0.0",
        "click>=8.0.0",
        "rich>=13.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "httpx>=0.24.0",
        ]
    },
    entry_points={
        "console_scripts": [
            "nl2sql=nl2sql.cli:main",
        ],
    },
)
