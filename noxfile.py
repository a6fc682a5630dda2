"""Nox session management for the playoff_pool quality pipeline.

Running ``nox`` executes Ruff (lint/format) -> Mypy (type check) -> Pytest (tests).
Individual sessions can be invoked with ``nox -s <session>``.
"""

from __future__ import annotations

import nox

nox.options.sessions = ["lint", "typecheck", "tests"]


@nox.session(python=False)
def lint(session: nox.Session) -> None:
    """Run Ruff linting with auto-fix and format checking."""
    session.run("ruff", "check", ".", "--fix")
    session.run("ruff", "format", "--check", ".")


@nox.session(python=False)
def typecheck(session: nox.Session) -> None:
    """Run mypy strict type checking on source and test files."""
    session.run(
        "mypy",
        "--strict",
        "--show-error-codes",
        "--namespace-packages",
        "src/playoff_pool",
        "tests",
    )


@nox.session(python=False)
def tests(session: nox.Session) -> None:
    """Run the fast test suite (everything not marked ``slow``)."""
    session.run("pytest", "--tb=short", "-m", "not slow")


@nox.session(python=False, name="tests-all")
def tests_all(session: nox.Session) -> None:
    """Run the full pytest test suite, including the slow convergence checks."""
    session.run("pytest", "--tb=short")
