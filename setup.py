from setuptools import setup, find_packages

setup(
    name="taxadelta",
    version="0.1.0",
    description="Paired longitudinal microbiome analysis - taxon aggregation and baseline/follow-up change metrics",
    author="Camila Duitama",
    author_email="camiladuitama@gmail.com",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.10",
    install_requires=[
        "numpy>=1.24.0",
        "polars>=0.19.0",
        "pyarrow>=14.0",  # polars -> pandas conversion
        "pandas>=2.0.0",
        "pyyaml>=6.0",
    ],
    extras_require={
        "dev": ["pytest", "black", "isort"],
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "taxadelta-change=taxadelta.cli.change:main",
        ],
    },
)
