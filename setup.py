"""Setup script for bayesworkflow package."""

from setuptools import setup, find_packages
from pathlib import Path

# Read README
this_directory = Path(__file__).parent
long_description_path = this_directory / "README.md"

# Only read README if it exists
if long_description_path.exists():
    long_description = long_description_path.read_text(encoding='utf-8')
else:
    long_description = "bayesworkflow: Bayesian regression workflow with PyMC"

# Read version
version = {}
with open(this_directory / "bayesworkflow" / "version.py") as f:
    exec(f.read(), version)

setup(
    name="bayesworkflow",
    version=version['__version__'],
    author=version['__author__'],
    author_email=version['__email__'],
    description=version['__description__'],
    long_description=long_description,
    long_description_content_type="text/markdown",
    url=version['__url__'],
    packages=find_packages(exclude=["tests", "tests.*", "examples", "docs"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "Intended Audience :: Education",
        "Topic :: Scientific/Engineering :: Mathematics",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
    ],
    python_requires=">=3.10",
    install_requires=[
        "pymc>=5.10.0",
        "arviz>=0.17.0,<1.0",
        "numpy>=1.24.0",
        "pandas>=2.0.0",
        "scikit-learn>=1.2.0",
        "scipy>=1.10.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    keywords=[
        "bayesian",
        "mcmc",
        "regression",
        "poisson-regression",
        "probabilistic-programming",
        "teaching",
    ],
    project_urls={
        "Bug Reports": "https://github.com/bayesworkflow/bayesworkflow/issues",
        "Source": "https://github.com/bayesworkflow/bayesworkflow",
    },
)
