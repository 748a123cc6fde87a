"""A setuptools based setup module.
See:
https://packaging.python.org/guides/distributing-packages-using-setuptools/
https://github.com/pypa/sampleproject
"""

# Always prefer setuptools over distutils
from setuptools import setup, find_packages
from os import path


here = path.abspath(path.dirname(__file__))

# Get the long description from the README file
with open(path.join(here, "README.md"), encoding="utf-8") as f:
    long_description = f.read()

# Arguments marked as "Required" below must be included for upload to PyPI.
# Fields marked as "Optional" may be commented out.

setup(
    # This is the name of your project. It will determine how users can
    # install this project, e.g.:
    #
    # $ pip install landtopo
    name="landtopo",  # Required
    # Versions should comply with PEP 440:
    # https://www.python.org/dev/peps/pep-0440/
    version="0.1.0",  # Required
    # This is a one-line description or tagline of what your project does.
    description="Landscape topology graphs from polygon and line layers",  # Optional
    long_description=long_description,  # Optional
    # Denotes that our long_description is in Markdown.
    long_description_content_type="text/markdown",  # Optional (see note above)
    # Classifiers help users find your project by categorizing it.
    #
    # For a list of valid classifiers, see https://pypi.org/classifiers/
    classifiers=[  # Optional
        # How mature is this project? Common values are
        #   3 - Alpha
        #   4 - Beta
        #   5 - Production/Stable
        "Development Status :: 3 - Alpha",
        # Indicate who your project is intended for
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: GIS",
        # Pick your license as you wish
        "License :: OSI Approved :: MIT License",
        # Specify the Python versions you support here.
        "Programming Language :: Python :: 3.8",
    ],
    # This field adds keywords for your project which will appear on the
    # project page.
    #
    # Note that this is a string of words separated by whitespace, not a list.
    keywords="landscape topology polygon graph gis",  # Optional
    packages=find_packages(exclude=["contrib", "docs", "tests"]),  # Required
    # 'pip install' will check this and refuse to install the project if the
    # version does not match.
    python_requires=">=3.8",
    # This field lists other packages that your project depends on to run.
    # Any package you put here will be installed by pip when your project is
    # installed, so they must be valid existing projects.
    install_requires=[
        "beartype>=0.10.0",
        "geopandas>=0.12.0",
        "networkx>=2.5",
        "numpy>=1.19.4",
        "pandas>=1.1.4",
        "shapely>=2.0.0",
    ],  # Optional
    # List additional groups of dependencies here (e.g. development
    # dependencies). Users will be able to install these using the "extras"
    # syntax, for example:
    #
    #   $ pip install landtopo[dev]
    extras_require={
        "dev": [
            "hypothesis>=5.43.3",
            "nox",
            "pytest>=6.2.1",
        ],
        "coverage": [
            "coverage>=5.3",
            "hypothesis>=5.43.3",
            "pytest>=6.2.1",
        ],
    },  # Optional
)
