from setuptools import setup, find_packages

setup(
    name="ttf-rolling-garch",
    version="0.1.0",
    packages=find_packages(exclude=["tests"]),
    py_modules=["calculate_rolling"],
    install_requires=[
        "numpy",
        "pandas",
        "scipy",
        "arch",
        "duckdb",
        "tqdm",
        "psutil",
    ],
    extras_require={
        "test": ["pytest"],
    },
    python_requires=">=3.8",
)
