"""Setup script for the curlish package."""

from setuptools import setup, find_packages

requires = ["httpx>=0.27", "click>=8.0"]

__version__ = None
exec(open("src/curlish/version.py").read())

setup(
    name="curlish",
    version=__version__,
    description="Small synchronous HTTP client wrapper with a raw response parser",
    package_dir={"": "src"},
    packages=find_packages("src"),
    include_package_data=True,
    python_requires=">=3.9",
    install_requires=requires,
    extras_require={"test": ["pytest"]},
    entry_points={"console_scripts": ["curlish = curlish.http.client:curlish"]},
)
