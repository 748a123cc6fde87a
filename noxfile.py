"""
Nox test suite.
"""
from pathlib import Path

import nox

DEFAULT_PYTHON_VERSION = "3.8"
PACKAGE_NAME = "landtopo"
PYTHON_VERSIONS = ["3.8", "3.9", "3.10"]
TESTS_PATH = Path("tests")

VENV_PARAMS = dict(venv_params=["--copies"])


def install_dev(session, extras: str = ""):
    """
    Install package with extras.
    """
    session.install(f".{extras}")


@nox.session(python=PYTHON_VERSIONS, reuse_venv=True, **VENV_PARAMS)
def tests_pip(session):
    """
    Run test suite with pip install.
    """
    # Check if any tests exist
    if (
        not TESTS_PATH.exists()
        or TESTS_PATH.is_file()
        or len(list(TESTS_PATH.iterdir())) == 0
    ):
        print(f"No tests in {TESTS_PATH} directory.")
        return

    # Install dependencies dev + coverage
    install_dev(session=session, extras="[coverage]")

    # Test with pytest and doctests and determine coverage
    session.run(
        "coverage",
        "run",
        "--source",
        PACKAGE_NAME,
        "-m",
        "pytest",
        "--doctest-modules",
        PACKAGE_NAME,
        str(TESTS_PATH),
    )

    # Fails with test coverage under 70
    session.run("coverage", "report", "--fail-under", "70")
