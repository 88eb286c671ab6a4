"""
setup.py for the lqocp Python package.

Install for development from the repository root:
    pip install -e ".[test]"
"""

from setuptools import find_packages, setup

setup(
    name="lqocp",
    version="0.1.0",
    description="Riccati-structured solvers for linear-quadratic optimal control",
    package_dir={"": "python"},
    packages=find_packages(where="python"),
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.20",
        "scipy>=1.7",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-cov>=4.0",
        ],
        "dev": [
            "pytest>=7.0",
            "pytest-cov>=4.0",
            "black>=23.0",
            "ruff>=0.1.0",
            "mypy>=1.0",
        ],
    },
)
