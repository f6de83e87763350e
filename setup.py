from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="squadron",
    version="1.0.0",
    author="Squadron Team",
    author_email="",
    description="Squadron - deploy containers to local and SSH-reachable servers",
    long_description=long_description,
    long_description_content_type="text/markdown",
    package_dir={"": "backend"},
    packages=find_packages("backend", exclude=["tests", "tests.*", "alembic", "alembic.*", "scripts", "scripts.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Intended Audience :: System Administrators",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.10",
    install_requires=[
        "fastapi>=0.104.0",
        "uvicorn[standard]>=0.24.0",
        "sqlalchemy[asyncio]>=2.0.0",
        "asyncpg>=0.29.0",
        "alembic>=1.12.0",
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "celery>=5.3.0",
        "redis>=5.0.0",
        "bcrypt>=4.0.0,<5.0.0",
        "asyncssh>=2.14.0",
        "pyyaml>=6.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "httpx>=0.25.0",
        ],
    },
)
