from setuptools import find_packages, setup

from src.bddbridge.constants import VERSION

DESCRIPTION = """Behave/browser bridge (bddbridge)
Runs behave features against a browser-automation session. Step bodies are
wrapped into retryable, timeout-bound units that work as plain blocking
functions or as coroutines, and behave lifecycle events are forwarded to
user hooks without letting hook errors fail the run.
"""

setup(
    name="bddbridge",
    version=VERSION,
    packages=find_packages(where="src", exclude=["__pycache__", "*.__pycache__*"]),
    package_dir={"": "src"},
    include_package_data=True,
    install_requires=[
        "behave<2.0,>=1.3.3",
        "dotenv<1.0,>=0.9.9",
        "packaging<26.0,>=25.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.3,<9.0",
            "pytest-mock>=3.14,<4.0",
        ],
    },
    author="Henrik Ankersø",
    author_email="noreply@diblo.dk",
    description=DESCRIPTION,
    long_description=DESCRIPTION,
    license="MIT License",
    classifiers=["Programming Language :: Python :: 3.8"],
)
