"""a11ycheck CLI entry point."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, NoReturn

import click

from a11ycheck import __version__
from a11ycheck.config import (
    CONFIG_NAME,
    DEFAULT_CONFIG_YAML,
    ConfigError,
    Config,
    db_path,
    load_config,
    state_dir,
)
from a11ycheck.infrastructure.db import create_schema, open_db, set_meta

if TYPE_CHECKING:
    import sqlite3

_PROJECT_OPTION = click.option(
    "--project",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Project root (default: current directory).",
)


@click.group()
@click.version_option(version=__version__, prog_name="a11ycheck")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output (errors only).")
@click.pass_context
def main(ctx: click.Context, *, verbose: bool, quiet: bool) -> None:
    """a11ycheck - accessibility issue checker for course content."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    level = logging.DEBUG if verbose else logging.ERROR if quiet else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _fail(message: str) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _open_project(project: Path | None) -> tuple[sqlite3.Connection, Config, Path]:
    """Open the project database and config, exiting with an error if missing."""
    project_root = project or Path.cwd()
    path = db_path(project_root)
    if not path.exists():
        _fail("database not found. Run `a11ycheck init` first.")
    try:
        config = load_config(project_root)
    except ConfigError as exc:
        _fail(f"invalid config.yml: {exc}")
    conn = open_db(path)
    create_schema(conn)
    return conn, config, project_root


@main.command()
@_PROJECT_OPTION
def init(*, project: Path | None) -> None:
    """Create .a11ycheck/ with a default config.yml and an empty database."""
    project_root = project or Path.cwd()
    directory = state_dir(project_root)
    directory.mkdir(parents=True, exist_ok=True)

    config_path = directory / CONFIG_NAME
    if not config_path.exists():
        config_path.write_text(DEFAULT_CONFIG_YAML, encoding="utf-8")
        click.echo(f"Created {config_path.relative_to(project_root)}")

    conn = open_db(db_path(project_root))
    try:
        create_schema(conn)
        set_meta(conn, "a11ycheck_version", __version__)
    finally:
        conn.close()
    click.echo("Initialized a11ycheck.")


@main.command("import")
@click.argument(
    "content_dir", type=click.Path(exists=True, file_okay=False, path_type=Path)
)
@_PROJECT_OPTION
@click.option("--scan", "scan_after", is_flag=True, help="Scan all resources after import.")
def import_(*, content_dir: Path, project: Path | None, scan_after: bool) -> None:
    """Import pages/*.html and assignments/*.html from CONTENT_DIR."""
    from a11ycheck.resources import import_directory

    conn, config, _root = _open_project(project)
    try:
        result = import_directory(conn, content_dir)
        set_meta(conn, "content_root", str(content_dir.resolve()))
        click.echo(f"Added:     {result.added}")
        click.echo(f"Updated:   {result.updated}")
        click.echo(f"Unchanged: {result.unchanged}")
        if scan_after:
            from a11ycheck.scanner import scan_all

            scanned = scan_all(conn, config)
            _echo_scan_result(scanned.skipped, len(scanned.scans), scanned.failed)
    finally:
        conn.close()


@main.command("export")
@click.argument("content_dir", type=click.Path(file_okay=False, path_type=Path))
@_PROJECT_OPTION
def export(*, content_dir: Path, project: Path | None) -> None:
    """Write fixed resource bodies back to CONTENT_DIR."""
    from a11ycheck.resources import export_directory

    conn, _config, _root = _open_project(project)
    try:
        written = export_directory(conn, content_dir)
    finally:
        conn.close()
    click.echo(f"Wrote {written} file(s).")


def _echo_scan_result(skipped: bool, scanned: int, failed: int) -> None:
    if skipped:
        click.echo("Accessibility scan disabled: too many resources in this course.")
        return
    click.echo(f"Scanned: {scanned}")
    if failed:
        click.echo(f"Failed:  {failed}")


@main.command()
@_PROJECT_OPTION
@click.option("--resource", "resource_id", type=int, default=None, help="Scan one resource.")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON.")
def scan(*, project: Path | None, resource_id: int | None, output_json: bool) -> None:
    """Check pages and assignments and record their issues."""
    from a11ycheck.resources import ResourceNotFoundError
    from a11ycheck.scanner import rescan, scan_all

    conn, config, _root = _open_project(project)
    try:
        if resource_id is not None:
            try:
                scans = [rescan(conn, resource_id, config)]
            except ResourceNotFoundError as exc:
                _fail(str(exc))
            skipped, failed = False, sum(1 for s in scans if s.workflow_state == "failed")
        else:
            result = scan_all(conn, config)
            scans, skipped, failed = result.scans, result.skipped, result.failed
    finally:
        conn.close()

    if output_json:
        data = {"skipped": skipped, "scans": [s.to_dict() for s in scans]}
        click.echo(json.dumps(data, ensure_ascii=False, indent=2))
        return
    _echo_scan_result(skipped, len(scans), failed)
    for s in scans:
        if s.error_message:
            click.echo(f"  [ERR] {s.resource_name}: {s.error_message}")


@main.command()
@_PROJECT_OPTION
@click.option("--page", default=1, type=int, help="Page number.")
@click.option("--page-size", default=10, type=int, help="Rows per page.")
@click.option(
    "--sort",
    "sort_id",
    type=click.Choice(
        [
            "resource_name",
            "resource_type",
            "resource_workflow_state",
            "resource_updated_at",
            "issue_count",
        ]
    ),
    default=None,
    help="Sort column.",
)
@click.option("--desc", is_flag=True, help="Sort descending.")
@click.option("--search", default=None, help="Filter by resource name.")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON.")
def status(
    *,
    project: Path | None,
    page: int,
    page_size: int,
    sort_id: str | None,
    desc: bool,
    search: str | None,
    output_json: bool,
) -> None:
    """Show the scan table: one row per resource."""
    from a11ycheck.scanner import list_scans

    conn, _config, _root = _open_project(project)
    try:
        result = list_scans(
            conn,
            page=page,
            page_size=page_size,
            sort_id=sort_id,
            sort_direction="descending" if desc else "ascending",
            search=search,
        )
    finally:
        conn.close()

    if output_json:
        data = {
            "page": result.page,
            "page_size": result.page_size,
            "total": result.total,
            "scans": [s.to_dict() for s in result.scans],
        }
        click.echo(json.dumps(data, ensure_ascii=False, indent=2))
        return

    from rich.console import Console
    from rich.table import Table

    console = Console()
    table = Table(title=f"Resources (page {result.page}/{result.page_count}, {result.total} total)")
    table.add_column("Scan", justify="right")
    table.add_column("Name", style="cyan")
    table.add_column("Type")
    table.add_column("State")
    table.add_column("Updated")
    table.add_column("Issues", justify="right")
    for s in result.scans:
        issues = s.error_message or str(s.issue_count)
        style = "red" if s.workflow_state == "failed" else "yellow" if s.issue_count else "green"
        table.add_row(
            str(s.id),
            s.resource_name,
            s.resource_type,
            s.resource_workflow_state,
            s.resource_updated_at[:10],
            f"[{style}]{issues}[/]",
        )
    console.print(table)


_FORMAT_OPTION = click.option(
    "--format",
    "fmt",
    type=click.Choice(["rich", "json", "porcelain"]),
    default=None,
    help="Output format (default: rich for TTY, porcelain otherwise).",
)


def _echo_report(project: Path | None, query: str | None, fmt: str | None) -> None:
    from a11ycheck.report import format_json, format_porcelain, format_rich, search

    conn, config, _root = _open_project(project)
    try:
        data = search(conn, query, config)
    finally:
        conn.close()

    if fmt is None:
        fmt = "rich" if sys.stdout.isatty() else "porcelain"
    formatters = {
        "rich": format_rich,
        "json": format_json,
        "porcelain": format_porcelain,
    }
    output = formatters[fmt](data)
    if output:
        click.echo(output)


@main.command()
@_PROJECT_OPTION
@_FORMAT_OPTION
def report(*, project: Path | None, fmt: str | None) -> None:
    """Report every page and assignment with its active issues."""
    _echo_report(project, None, fmt)


@main.command()
@click.argument("query")
@_PROJECT_OPTION
@_FORMAT_OPTION
def search(*, query: str, project: Path | None, fmt: str | None) -> None:
    """Report only resources where any field contains QUERY."""
    _echo_report(project, query, fmt)


@main.command()
@_PROJECT_OPTION
@click.option("--rule", "rule_types", multiple=True, help="Filter by rule id (repeatable).")
@click.option(
    "--type",
    "artifact_types",
    multiple=True,
    type=click.Choice(["Page", "Assignment"]),
    help="Filter by resource type (repeatable).",
)
@click.option(
    "--state",
    "workflow_states",
    multiple=True,
    type=click.Choice(["active", "resolved", "dismissed"]),
    help="Filter by workflow state (repeatable).",
)
@click.option("--from", "from_date", default=None, help="Created on or after (YYYY-MM-DD).")
@click.option("--to", "to_date", default=None, help="Created on or before (YYYY-MM-DD).")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON.")
def issues(
    *,
    project: Path | None,
    rule_types: tuple[str, ...],
    artifact_types: tuple[str, ...],
    workflow_states: tuple[str, ...],
    from_date: str | None,
    to_date: str | None,
    output_json: bool,
) -> None:
    """List issues, filtered by rule, resource type, state and date."""
    from a11ycheck.issues import Filters, list_issues

    conn, _config, _root = _open_project(project)
    try:
        found = list_issues(
            conn,
            Filters(
                rule_types=rule_types,
                artifact_types=artifact_types,
                workflow_states=workflow_states,
                from_date=from_date,
                to_date=to_date,
            ),
        )
    finally:
        conn.close()

    if output_json:
        click.echo(json.dumps([i.to_dict() for i in found], ensure_ascii=False, indent=2))
        return
    if not found:
        click.echo("No issues.")
        return
    for issue in found:
        click.echo(
            f"{issue.id:>5}  {issue.workflow_state:<9}  {issue.resource_type}:{issue.resource_id}"
            f"  {issue.rule_type}  {issue.node_path}"
        )


@main.command()
@_PROJECT_OPTION
@click.option("--json", "output_json", is_flag=True, help="Output as JSON.")
def summary(*, project: Path | None, output_json: bool) -> None:
    """Active issue counts per rule."""
    from a11ycheck.issues import issue_summary

    conn, _config, _root = _open_project(project)
    try:
        points = issue_summary(conn)
    finally:
        conn.close()

    if output_json:
        click.echo(json.dumps([p.to_dict() for p in points], ensure_ascii=False, indent=2))
        return

    from rich.console import Console
    from rich.table import Table

    table = Table(title="Issues by rule")
    table.add_column("Rule", style="cyan")
    table.add_column("Issue")
    table.add_column("Count", justify="right")
    table.add_column("Severity")
    colors = {"High": "red", "Medium": "yellow", "Low": "green"}
    for p in points:
        table.add_row(p.id, p.issue, str(p.count), f"[{colors[p.severity]}]{p.severity}[/]")
    Console().print(table)


@main.command()
@click.argument("issue_id", type=int)
@click.argument("workflow_state")
@click.option("--value", default=None, help="Fix value (required for 'resolved').")
@_PROJECT_OPTION
def update(*, issue_id: int, workflow_state: str, value: str | None, project: Path | None) -> None:
    """Set an issue's WORKFLOW_STATE (resolved applies the fix)."""
    from a11ycheck.issues import (
        InvalidWorkflowStateError,
        IssueNotFoundError,
        IssueUpdateError,
        update_issue,
    )
    from a11ycheck.rules import FixError

    conn, config, _root = _open_project(project)
    try:
        result = update_issue(conn, issue_id, workflow_state, value, config)
    except IssueNotFoundError as exc:
        _fail(str(exc))
    except (InvalidWorkflowStateError, IssueUpdateError, FixError) as exc:
        _fail(str(exc))
    finally:
        conn.close()
    click.echo(
        f"Issue {issue_id} is now {result.issue.workflow_state} "
        f"({result.issue_count} active issue(s) left on this resource)"
    )


@main.command()
@click.argument("issue_id", type=int)
@click.option("--value", default=None, help="Value to preview; omit to show the current element.")
@_PROJECT_OPTION
def preview(*, issue_id: int, value: str | None, project: Path | None) -> None:
    """Show the element of an issue as it would look after the fix."""
    from a11ycheck.issues import IssueNotFoundError, get_issue, update_preview
    from a11ycheck.rules import FixError

    conn, config, _root = _open_project(project)
    try:
        issue = get_issue(conn, issue_id)
        result = update_preview(
            conn, issue.rule_type, issue.resource_type, issue.resource_id, issue.node_path,
            value, config,
        )
    except (IssueNotFoundError, FixError) as exc:
        _fail(str(exc))
    finally:
        conn.close()
    click.echo(result.content)


@main.command()
@click.argument("rule_id")
@click.argument("resource_type", type=click.Choice(["Page", "Assignment"]))
@click.argument("resource_id", type=int)
@click.argument("path")
@click.argument("value", required=False, default=None)
@_PROJECT_OPTION
def fix(
    *,
    rule_id: str,
    resource_type: str,
    resource_id: int,
    path: str,
    value: str | None,
    project: Path | None,
) -> None:
    """Apply RULE_ID's fix to the element at PATH and save the resource."""
    from a11ycheck.issues import update_content
    from a11ycheck.resources import ResourceNotFoundError
    from a11ycheck.rules import FixError

    conn, config, _root = _open_project(project)
    try:
        result = update_content(conn, rule_id, resource_type, resource_id, path, value, config)
    except (ResourceNotFoundError, FixError, ValueError) as exc:
        _fail(str(exc))
    finally:
        conn.close()
    click.echo(f"Fixed {resource_type} {resource_id} at {result.path or path}")


@main.command()
@click.argument("issue_id", type=int)
@_PROJECT_OPTION
def generate(*, issue_id: int, project: Path | None) -> None:
    """Suggest a fix value for an issue (alt text via the configured LLM)."""
    from a11ycheck.alt_text import LLMError
    from a11ycheck.issues import IssueNotFoundError, generate_fix, get_issue
    from a11ycheck.rules import FixError

    conn, config, _root = _open_project(project)
    try:
        issue = get_issue(conn, issue_id)
        value = generate_fix(
            conn, issue.rule_type, issue.resource_type, issue.resource_id, issue.node_path,
            config=config,
        )
    except (IssueNotFoundError, FixError, LLMError) as exc:
        _fail(str(exc))
    finally:
        conn.close()
    if value is None:
        _fail("this issue has no generated fix (is an llm section configured?)")
    click.echo(value)


@main.command("rules")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON.")
def rules_(*, output_json: bool) -> None:
    """List the available rules."""
    from a11ycheck.rules import RULES

    if output_json:
        data = [
            {"id": cls.id, "display_name": cls.display_name, "link": cls.link}
            for cls in sorted(RULES.values(), key=lambda c: c.id)
        ]
        click.echo(json.dumps(data, ensure_ascii=False, indent=2))
        return
    for cls in sorted(RULES.values(), key=lambda c: c.id):
        click.echo(f"{cls.id:<24} {cls.display_name}")


@main.command()
@click.argument("scan_id", type=int)
@_PROJECT_OPTION
def remediate(*, scan_id: int, project: Path | None) -> None:
    """Step through a resource's issues interactively.

    At each issue: type a value to preview it, then [s]ave, or use
    [n]ext, [p]revious, [d]ismiss, [g]enerate, [u]ndo, [q]uit.
    """
    from a11ycheck.navigator import IssueNavigator
    from a11ycheck.rules import FixError
    from a11ycheck.scanner import ScanNotFoundError

    conn, config, _root = _open_project(project)
    try:
        try:
            nav = IssueNavigator(conn, scan_id, config)
        except ScanNotFoundError as exc:
            _fail(str(exc))
        pending: str | None = None
        while not nav.is_done:
            issue = nav.current
            assert issue is not None
            data = issue.to_dict()
            click.echo("")
            position = f"[{nav.index + 1}/{len(nav.issues)}]"
            click.echo(f"{position} {data['displayName']} at {issue.node_path}")
            click.echo(f"  {data['message']}")
            form = data["form"]
            if isinstance(form, dict) and form.get("options"):
                click.echo(f"  options: {', '.join(form['options'])}")

            answer = click.prompt("value or command", default="n", show_default=False)
            if answer == "q":
                break
            if answer in ("n", "p", "d", "u"):
                pending = None
            if answer == "n":
                nav.next()
            elif answer == "p":
                nav.previous()
            elif answer == "d":
                nav.dismiss()
            elif answer == "u":
                nav.undo()
                click.echo("Issue undone")
            elif answer == "g":
                suggestion = nav.generate()
                click.echo(suggestion or nav.error or "No suggestion available.")
            elif answer == "s":
                if pending is None:
                    click.echo("Preview a value first.")
                    continue
                try:
                    nav.save_and_next(pending)
                except FixError as exc:
                    click.echo(f"Error: {exc}", err=True)
                pending = None
            else:
                result = nav.preview(answer)
                if result is None:
                    click.echo(f"Error: {nav.error}", err=True)
                else:
                    pending = answer
                    click.echo(result.content)

        if nav.is_done:
            click.echo("All issues on this resource are handled.")
            upcoming = nav.next_resource()
            if upcoming is not None:
                click.echo(
                    f"Next: scan {upcoming.id} {upcoming.resource_name} "
                    f"({upcoming.issue_count} issue(s))"
                )
    finally:
        conn.close()
