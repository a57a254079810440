from setuptools import find_packages, setup

setup(
    name="repo-migrations",
    version="0.1.0",
    license="MIT",

    author="Lvce Editor",
    python_requires=">=3.11",
    description="Bot that migrates GitHub repositories by proposing small, "
                "idempotent changes as pull requests.",

    url='https://github.com/lvce-editor/repository-migrations',

    packages=find_packages(exclude=('tests', '*.test')),
    package_data={'repo_migrations': ['data/*.json']},

    install_requires=[
        "sretoolbox~=2.0",
        "Click>=7.0,<9.0",
        "PyGithub>=2.1,<3.0",
        "requests>=2.31,<3.0",
        "semver~=3.0",
        "pydantic~=2.7",
        "pydantic-settings~=2.3",
        "python-json-logger>=3.1,<4.0",
        "fastapi>=0.115,<1.0",
        "uvicorn>=0.30,<1.0",
    ],

    extras_require={
        "test": [
            "pytest~=8.0",
            "pytest-mock~=3.14",
            "pytest-httpserver~=1.0",
            "httpx>=0.27,<1.0",
        ],
    },

    test_suite="repo_migrations.test",

    classifiers=[
        'Development Status :: 2 - Pre-Alpha',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.12',
    ],
    entry_points={
        'console_scripts': [
            'repo-migrations = repo_migrations.cli:cli',
        ],
    },
)
