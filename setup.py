# facestyle/setup.py
from setuptools import setup

setup(
    name="facestyle",
    version="0.1.0",
    packages=["facestyle", "facestyle.src"],
    python_requires=">=3.10",
    install_requires=[
        "numpy",
        "torch",
        "numba",
        "tqdm",
        "pydantic>=2",
        "PyYAML",
        "Pillow",
        "matplotlib",
    ],
    extras_require={"test": ["pytest"]},
)
