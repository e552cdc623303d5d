import nox

PYTHON_VERSION = "3.11"


@nox.session(python=PYTHON_VERSION)
def tests(session):
    session.install("-e", ".[test]")
    session.run("pytest", "tests/unit", *session.posargs)


@nox.session(python=PYTHON_VERSION)
def integration(session):
    # Needs Docker for the Redis container
    session.install("-e", ".[test]")
    session.run("pytest", "tests/integration", *session.posargs)


@nox.session(python=PYTHON_VERSION)
def lint(session):
    session.install("ruff")
    session.run("ruff", "check", ".")


@nox.session(python=PYTHON_VERSION)
def format(session):
    session.install("black", "ruff")
    session.run("black", "--check", "common", "packages", "tests")
    session.run("ruff", "check", ".")
