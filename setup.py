from setuptools import setup, find_packages

setup(
    name="formstate",
    version="0.1.0",
    description="Form state engine: values, validation modes, error routing and submission",
    author="Formstate Team",
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    python_requires=">=3.8",
    install_requires=[],
    extras_require={
        "test": ["pytest"],
    },
)
