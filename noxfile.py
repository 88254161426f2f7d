"""Nox sessions for the bracket engine."""

import nox

nox.options.sessions = ["tests", "lint"]
PYTHON = "3.11"


@nox.session(python=PYTHON)
def tests(session):
    """Run pytest with branch coverage over the engine package."""
    session.install("-e", ".[dev]")
    session.run(
        "pytest",
        "--cov=bracket_engine",
        "--cov-branch",
        "--cov-report=term-missing",
        "--cov-fail-under=80",
        *session.posargs,
    )


@nox.session(python=PYTHON)
def lint(session):
    session.install("ruff>=0.1.0")
    session.run("ruff", "check", "bracket_engine", "tests")
    session.run("ruff", "format", "--check", "bracket_engine", "tests")


@nox.session(python=PYTHON, name="format")
def format_code(session):
    session.install("ruff>=0.1.0")
    session.run("ruff", "format", "bracket_engine", "tests")
    session.run("ruff", "check", "--fix", "bracket_engine", "tests")
