import nox

PYTHON_VERSIONS = ["3.10", "3.11", "3.12"]
PACKAGE = "src/mailflow"
LOCATIONS = [PACKAGE, "tests", "noxfile.py"]

nox.options.sessions = ["lint", "type_check", "tests"]


@nox.session(python=PYTHON_VERSIONS)
def tests(session: nox.Session) -> None:
    """Unit, end-to-end and architecture tests, with the SES extra installed."""
    session.install("-e", ".[test,aws]")
    session.run("pytest", *session.posargs)


@nox.session(python=PYTHON_VERSIONS[-1])
def e2e(session: nox.Session) -> None:
    """Only the in-memory submission-to-delivery scenarios."""
    session.install("-e", ".[test]")
    session.run("pytest", "tests/test_end_to_end.py", "-v", *session.posargs)


@nox.session(python=PYTHON_VERSIONS[-1])
def autoformat(session: nox.Session) -> None:
    """Apply ruff fixes and formatting in place."""
    session.install("ruff")
    session.run("ruff", "check", "--fix", *LOCATIONS)
    session.run("ruff", "format", *LOCATIONS)


@nox.session(python=PYTHON_VERSIONS[-1])
def lint(session: nox.Session) -> None:
    session.install("ruff")
    session.run("ruff", "check", *LOCATIONS)
    session.run("ruff", "format", "--check", *LOCATIONS)


@nox.session(python=PYTHON_VERSIONS)
def type_check(session: nox.Session) -> None:
    """mypy in strict mode over the package."""
    session.install("-e", ".[dev,aws]")
    session.run("mypy", PACKAGE)


@nox.session(python=PYTHON_VERSIONS[-1])
def arch_check(session: nox.Session) -> None:
    """Layering rules (pytest-archon)."""
    session.install("-e", ".[test]")
    session.run("pytest", "tests/architecture", *session.posargs)


@nox.session(python=PYTHON_VERSIONS[-1])
def dead_code(session: nox.Session) -> None:
    session.install("vulture")
    session.run("vulture", "--min-confidence", "80", PACKAGE, "tests")
