from setuptools import setup, find_packages

setup(
    name="training_signals",
    version="1.0.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "pandas>=2.0.0",
        "numpy>=1.24.0",
        "scipy>=1.10.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "training-signals=training_signals.cli:main",
        ],
    },
    python_requires=">=3.8",
)
