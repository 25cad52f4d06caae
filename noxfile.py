"""Nox sessions for the league package."""

import nox

nox.options.sessions = ["tests", "lint"]
PYTHON = "3.11"
SOURCES = ("pingpong_league", "scripts", "tests", "noxfile.py")


@nox.session(python=PYTHON)
def tests(session):
    """Run the test suite with coverage."""
    session.install("-e", ".[dev]")
    session.run(
        "pytest",
        "--cov=pingpong_league",
        "--cov-branch",
        "--cov-report=term-missing",
        "--cov-fail-under=85",
        *session.posargs,
    )


@nox.session(python=PYTHON)
def lint(session):
    """Check linting and formatting with ruff."""
    session.install("ruff>=0.1.0")
    session.run("ruff", "check", *SOURCES)
    session.run("ruff", "format", "--check", *SOURCES)


@nox.session(python=PYTHON)
def format_code(session):
    """Apply ruff formatting and autofixes."""
    session.install("ruff>=0.1.0")
    session.run("ruff", "format", *SOURCES)
    session.run("ruff", "check", "--fix", *SOURCES)
