from setuptools import setup, find_packages

setup(
    name="gst_reconcile",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["reconcile"],
    install_requires=[
        "pandas",
        "numpy",
        "openpyxl",
    ],
    extras_require={
        "test": ["pytest"],
    },
    author="Price Hatfield",
    description="A tool for reconciling GST source files (GSTR-2A/2B, IMS, purchase registers)",
    python_requires=">=3.8",
)
