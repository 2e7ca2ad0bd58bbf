"""Invoke tasks for TabSync development."""

from invoke import task
from invoke.context import Context


@task
def test(ctx: Context, verbose: bool = False, coverage: bool = False) -> None:
    """Run the test suite.

    Args:
        ctx: Invoke context
        verbose: Enable verbose output
        coverage: Run with coverage report
    """
    cmd = "uv run pytest"
    if verbose:
        cmd += " -v"
    if coverage:
        cmd += " --cov=tabsync --cov-report=term-missing"
    ctx.run(cmd, pty=True)


@task(name="import")
def import_data(
    ctx: Context,
    file: str,
    kind: str = "project",
    collection: str = "data/collection.json",
    dry_run: bool = False,
) -> None:
    """Import a CSV/XLSX file into a JSON collection.

    Args:
        ctx: Invoke context
        file: Spreadsheet to import
        kind: project, ticket, lead or purchase
        collection: JSON collection file to merge into
        dry_run: Report the result without writing anything
    """
    cmd = f"uv run tabsync-import '{file}' --kind {kind} --collection '{collection}'"
    if dry_run:
        cmd += " --dry-run"
    ctx.run(cmd, pty=True)


@task
def clean(ctx: Context) -> None:
    """Clean up temporary files."""
    # Clean Python cache
    for pattern in ["__pycache__", "*.pyc", "*.pyo", ".pytest_cache"]:
        ctx.run(f"find . -name '{pattern}' -exec rm -rf {{}} + 2>/dev/null || true", warn=True)

    # Clean build artifacts
    for path in ["build", "dist", "*.egg-info", ".eggs"]:
        ctx.run(f"rm -rf {path} 2>/dev/null || true", warn=True)

    print("Cleanup complete")
