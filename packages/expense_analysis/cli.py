# ruff: noqa: I001
"""CLI for the ``expense_analysis`` package.

Command handlers (``cmd_*``) do the work and return a process exit code; the
Typer commands below are thin wrappers around them. Environment variables are
loaded from a local ``.env`` (python-dotenv) in the root callback, which also
sets up logging. Business logic lives in the library modules; this file only
wires files, the ledger store and terminal output together.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from dotenv import load_dotenv

from .logging_setup import configure_logging
from .models import Transaction

if TYPE_CHECKING:
    from .persistence import LedgerStore


BACKUP_PASSWORD_ENV = "EA_BACKUP_PASSWORD"


# ---- Small module-level helpers used by CLI commands -------------------------


@contextmanager
def _open_store(database_url: str | None) -> Iterator[LedgerStore]:
    """Yield a ``LedgerStore`` on a migrated database; dispose on exit."""

    from db.client import Database
    from db.migrations import upgrade_to_head

    from .config import get_database_url
    from .persistence import LedgerStore

    url = get_database_url(database_url)
    upgrade_to_head(url)
    database = Database.from_url(url)
    try:
        yield LedgerStore(database)
    finally:
        database.dispose()


def _parse_month(value: str | None) -> date | None:
    """Parse ``YYYY-MM`` into the first day of that month."""

    if value is None:
        return None
    try:
        year, month = value.split("-")
        return date(int(year), int(month), 1)
    except ValueError as e:
        raise ValueError(f"expected YYYY-MM, got {value!r}") from e


def _load_files(paths: Sequence[str]) -> tuple[list[Transaction], int]:
    """Parse and merge statement files; returns ``(transactions, duplicates)``."""

    from .ingest import build_history

    result = build_history(paths)
    return list(result.merged), result.stats.duplicates_found


def _read_source(
    store: LedgerStore, paths: Sequence[str], analysis_id: int | None
) -> list[Transaction]:
    """Transactions from a saved analysis, the given files, or both merged."""

    from .duplicates import merge_transactions

    base: list[Transaction] = []
    if analysis_id is not None:
        saved = store.get_analysis(analysis_id)
        if saved is None:
            raise LookupError(f"No saved analysis with id {analysis_id}")
        base = list(saved.transactions)
    if not paths:
        return base
    loaded, _dups = _load_files(paths)
    return list(merge_transactions(base, loaded).merged) if base else loaded


def _resolve_password(password: str | None, *, enforce_policy: bool) -> str | None:
    if password:
        return password
    env_pw = os.getenv(BACKUP_PASSWORD_ENV)
    if env_pw:
        return env_pw
    from .term_ui import prompt_backup_password

    return prompt_backup_password(enforce_policy=enforce_policy)


def _money(amount: float) -> str:
    return f"{amount:,.2f}".replace(",", "'")


# ---- Command handlers --------------------------------------------------------


def cmd_analyze(
    paths: Sequence[str],
    *,
    database_url: str | None = None,
    analysis_id: int | None = None,
    period: str = "all",
    start: date | None = None,
    end: date | None = None,
    save_as: str | None = None,
    currency: str = "CHF",
    investments: bool = False,
) -> int:
    """Analyze statements (and/or a saved analysis) and print a report."""

    from .errors import ExpenseAnalysisError
    from .periods import filter_by_period, resolve_period
    from .report import analyze_expenses, render_report, summarize_investments

    if not paths and analysis_id is None:
        print("Error: provide statement files or --analysis.", file=sys.stderr)
        return 1

    try:
        window = resolve_period(period, custom_start=start, custom_end=end)
    except ValueError as e:
        print(f"Error: invalid period: {e}", file=sys.stderr)
        return 1

    try:
        with _open_store(database_url) as store:
            transactions = _read_source(store, paths, analysis_id)
            if save_as:
                file_name = ", ".join(Path(p).name for p in paths) or "merged"
                new_id = store.save_analysis(save_as, file_name, transactions)
                print(f"Saved analysis {new_id}: {save_as}")
            overrides = store.load_category_overrides()
    except (ExpenseAnalysisError, LookupError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    selected = filter_by_period(transactions, window)
    report = analyze_expenses(selected, overrides)
    print(render_report(report, currency=currency))

    if investments:
        summary = summarize_investments(selected)
        print()
        print(
            f"Investments: {currency} {_money(summary.total_invested)} "
            f"in {summary.transaction_count} purchase(s)"
        )
        for p in summary.platform_breakdown:
            print(f"  {p.platform}\t{_money(p.amount)}")
    return 0


def cmd_merge(paths: Sequence[str], *, analysis_id: int, database_url: str | None = None) -> int:
    """Merge statement files into a saved analysis and print merge stats."""

    from .duplicates import merge_transactions
    from .errors import ExpenseAnalysisError

    try:
        with _open_store(database_url) as store:
            saved = store.get_analysis(analysis_id)
            if saved is None:
                print(f"Error: No saved analysis with id {analysis_id}", file=sys.stderr)
                return 1
            loaded, _dups = _load_files(paths)
            result = merge_transactions(saved.transactions, loaded)
            store.update_analysis_transactions(analysis_id, result.merged)
    except ExpenseAnalysisError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    s = result.stats
    print(
        f"original={s.original_count}\tincoming={s.new_count}\t"
        f"added={len(result.new_transactions)}\tduplicates={s.duplicates_found}\t"
        f"total={s.merged_count}"
    )
    return 0


def cmd_duplicates(paths: Sequence[str]) -> int:
    """List rows that share a duplicate key within the given files."""

    from .duplicates import find_internal_duplicates
    from .errors import ExpenseAnalysisError
    from .ingest import load_statements

    try:
        batches = load_statements(paths)
    except ExpenseAnalysisError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    rows = [tx for batch in batches for tx in batch]
    groups = find_internal_duplicates(rows)
    for group in groups:
        first = group[0]
        print(
            f"{len(group)}x\t{first.purchase_date.isoformat()}\t"
            f"{_money(first.debit or first.credit or 0.0)}\t{first.booking_text}"
        )
    if not groups:
        print("No duplicates found.")
    return 0


def cmd_categorize(
    paths: Sequence[str], *, database_url: str | None = None, explain: bool = False
) -> int:
    """Print ``<fingerprint>\\t<date>\\t<category>\\t<booking text>`` per row."""

    from .categorization import explain_category
    from .duplicates import compute_fingerprint
    from .errors import ExpenseAnalysisError

    try:
        transactions, _dups = _load_files(paths)
        with _open_store(database_url) as store:
            overrides = store.load_category_overrides()
    except ExpenseAnalysisError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    for tx in transactions:
        fp = compute_fingerprint(tx)
        category, rule = explain_category(tx, overrides.get(fp))
        cols = [fp, tx.purchase_date.isoformat(), category]
        if explain:
            cols.append(rule)
        cols.append(tx.booking_text)
        print("\t".join(cols))
    return 0


def cmd_compare(
    paths: Sequence[str],
    key1: str,
    key2: str,
    *,
    database_url: str | None = None,
    analysis_id: int | None = None,
    weekly: bool = False,
) -> int:
    from .errors import ExpenseAnalysisError
    from .periods import compare_periods

    try:
        with _open_store(database_url) as store:
            transactions = _read_source(store, paths, analysis_id)
            overrides = store.load_category_overrides()
        comparison = compare_periods(
            transactions,
            key1,
            key2,
            kind="weekly" if weekly else "monthly",
            overrides=overrides,
        )
    except (ExpenseAnalysisError, LookupError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    c = comparison
    print(f"{c.period1.label}\t{_money(c.total_spent1)}\t({c.transaction_count1})")
    print(f"{c.period2.label}\t{_money(c.total_spent2)}\t({c.transaction_count2})")
    print(f"Difference\t{_money(c.total_diff)}\t{c.total_percent_change:+.1f}%")
    for row in c.category_comparisons:
        print(
            f"  {row.category}\t{_money(row.period1)}\t{_money(row.period2)}\t"
            f"{_money(row.difference)}\t{row.percent_change:+.1f}%"
        )
    return 0


def cmd_budget_set(category: str, amount: float, *, database_url: str | None = None) -> int:
    try:
        with _open_store(database_url) as store:
            budget_id = store.save_budget(category, amount)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(f"Saved budget {budget_id}")
    return 0


def cmd_budget_list(*, database_url: str | None = None) -> int:
    with _open_store(database_url) as store:
        budgets = store.list_budgets()
    for b in budgets:
        print(f"{b.id}\t{b.category}\t{_money(b.amount)}")
    if not budgets:
        print("No budgets.")
    return 0


def cmd_budget_delete(category: str, *, database_url: str | None = None) -> int:
    with _open_store(database_url) as store:
        deleted = store.delete_budget_by_category(category)
    if not deleted:
        print(f"Error: no budget for {category!r}", file=sys.stderr)
        return 1
    print(f"Deleted budget for {category}")
    return 0


def cmd_budget_status(
    paths: Sequence[str],
    *,
    database_url: str | None = None,
    analysis_id: int | None = None,
    month: str | None = None,
) -> int:
    from .errors import ExpenseAnalysisError
    from .report import calculate_budget_status

    try:
        anchor = _parse_month(month)
        with _open_store(database_url) as store:
            transactions = _read_source(store, paths, analysis_id)
            budgets = store.list_budgets()
            overrides = store.load_category_overrides()
    except (ExpenseAnalysisError, LookupError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    rows = calculate_budget_status(transactions, budgets, anchor, overrides)
    for r in rows:
        print(
            f"{r.budget.category}\t{_money(r.spent)} / {_money(r.budget.amount)}\t"
            f"{r.percent_used:.1f}%\t{r.status}"
        )
    if not rows:
        print("No budgets.")
    return 0


def cmd_analyses_list(*, database_url: str | None = None) -> int:
    from .models import local_day

    with _open_store(database_url) as store:
        analyses = store.list_analyses()
        info = store.storage_info()
    for a in analyses:
        print(
            f"{a.id}\t{a.name}\t{a.file_name}\t{local_day(a.upload_date).isoformat()}\t"
            f"{len(a.transactions)}"
        )
    print(f"{info.count} saved analysis(es), {info.estimated_size}")
    return 0


def cmd_analyses_rename(analysis_id: int, name: str, *, database_url: str | None = None) -> int:
    try:
        with _open_store(database_url) as store:
            ok = store.rename_analysis(analysis_id, name)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    if not ok:
        print(f"Error: No saved analysis with id {analysis_id}", file=sys.stderr)
        return 1
    return 0


def cmd_analyses_delete(analysis_id: int, *, database_url: str | None = None) -> int:
    with _open_store(database_url) as store:
        ok = store.delete_analysis(analysis_id)
    if not ok:
        print(f"Error: No saved analysis with id {analysis_id}", file=sys.stderr)
        return 1
    return 0


def cmd_override(
    fingerprint: str,
    category: str | None,
    *,
    database_url: str | None = None,
    clear: bool = False,
) -> int:
    """Set or clear the category override for one transaction fingerprint."""

    from .categories import OTHER

    with _open_store(database_url) as store:
        if clear:
            if not store.clear_category_override(fingerprint):
                print(f"Error: no override for {fingerprint}", file=sys.stderr)
                return 1
            print(f"Cleared override for {fingerprint}")
            return 0
        if category is None:
            from .term_ui import select_category

            current = store.load_category_overrides().get(fingerprint, OTHER)
            category = select_category(default=current)
        try:
            saved = store.set_category_override(fingerprint, category)
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
    print(f"{fingerprint}\t{saved}")
    return 0


def cmd_backup_export(
    out_path: str, *, password: str | None = None, database_url: str | None = None
) -> int:
    from .backup import create_encrypted_backup
    from .vault import validate_backup_password

    pw = _resolve_password(password, enforce_policy=True)
    if pw is None:
        print("Export canceled.", file=sys.stderr)
        return 1
    check = validate_backup_password(pw)
    if not check.ok:
        print(f"Error: password needs {', '.join(check.failures)}", file=sys.stderr)
        return 1

    with _open_store(database_url) as store:
        text = create_encrypted_backup(store, pw)
    try:
        Path(out_path).write_text(text, encoding="utf-8")
    except OSError as e:
        print(f"Error: failed to write backup '{out_path}': {e}", file=sys.stderr)
        return 1
    print(f"Wrote encrypted backup to {out_path}")
    return 0


def cmd_backup_restore(
    in_path: str, *, password: str | None = None, database_url: str | None = None
) -> int:
    from .backup import restore_encrypted_backup
    from .errors import BackupError

    try:
        text = Path(in_path).read_text(encoding="utf-8")
    except FileNotFoundError:
        print(f"Error: File not found: {in_path}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error: failed to read backup '{in_path}': {e}", file=sys.stderr)
        return 1

    pw = _resolve_password(password, enforce_policy=False)
    if pw is None:
        print("Restore canceled.", file=sys.stderr)
        return 1

    try:
        with _open_store(database_url) as store:
            summary = restore_encrypted_backup(store, text, pw)
    except BackupError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(
        f"Restored {summary.analyses_count} analysis(es), {summary.budgets_count} budget(s), "
        f"{summary.overrides_count} override(s)"
        + (", chart preferences" if summary.has_chart_preferences else "")
    )
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Analyze Swiss bank-statement CSV exports: categories, monthly trends, "
        "budgets and encrypted backups. Loads settings from a local .env."
    ),
)
budget_app = typer.Typer(no_args_is_help=True, add_completion=False, help="Monthly budgets.")
analyses_app = typer.Typer(no_args_is_help=True, add_completion=False, help="Saved analyses.")
backup_app = typer.Typer(no_args_is_help=True, add_completion=False, help="Encrypted backups.")
app.add_typer(budget_app, name="budget")
app.add_typer(analyses_app, name="analyses")
app.add_typer(backup_app, name="backup")

FilesArg = Annotated[
    list[Path] | None,
    typer.Argument(help="Statement CSV files.", dir_okay=False, show_default=False),
]
DatabaseUrlOpt = Annotated[
    str | None,
    typer.Option(
        "--database-url",
        help="Override EXPENSE_ANALYSIS_DATABASE_URL (defaults to SQLite in EA_DATA_DIR).",
    ),
]
AnalysisOpt = Annotated[
    int | None, typer.Option("--analysis", help="Id of a saved analysis to use.")
]


def _exit(code: int) -> None:
    if code:
        raise typer.Exit(code)


def _paths(files: list[Path] | None) -> list[str]:
    return [str(p) for p in files or []]


@app.command("analyze")
def analyze_cmd(
    files: FilesArg = None,
    *,
    database_url: DatabaseUrlOpt = None,
    analysis: AnalysisOpt = None,
    period: Annotated[
        str, typer.Option(help="Period preset: all, last30, last90, this_month, ...")
    ] = "all",
    start: Annotated[
        str | None, typer.Option("--from", help="Custom period start (YYYY-MM-DD).")
    ] = None,
    end: Annotated[str | None, typer.Option("--to", help="Custom period end (YYYY-MM-DD).")] = None,
    save: Annotated[
        str | None, typer.Option(help="Save the merged history under this name.")
    ] = None,
    currency: Annotated[str, typer.Option(help="Currency label for amounts.")] = "CHF",
    investments: Annotated[bool, typer.Option(help="Also summarize crypto purchases.")] = False,
) -> None:
    try:
        custom_start = date.fromisoformat(start) if start else None
        custom_end = date.fromisoformat(end) if end else None
    except ValueError as e:
        print(f"Error: invalid date: {e}", file=sys.stderr)
        raise typer.Exit(1) from e
    if custom_start or custom_end:
        period = "custom"
    _exit(
        cmd_analyze(
            _paths(files),
            database_url=database_url,
            analysis_id=analysis,
            period=period,
            start=custom_start,
            end=custom_end,
            save_as=save,
            currency=currency,
            investments=investments,
        )
    )


@app.command("merge")
def merge_cmd(
    files: Annotated[list[Path], typer.Argument(help="Statement CSV files.", dir_okay=False)],
    *,
    analysis: Annotated[int, typer.Option("--analysis", help="Saved analysis to extend.")],
    database_url: DatabaseUrlOpt = None,
) -> None:
    _exit(cmd_merge(_paths(files), analysis_id=analysis, database_url=database_url))


@app.command("duplicates")
def duplicates_cmd(
    files: Annotated[list[Path], typer.Argument(help="Statement CSV files.", dir_okay=False)],
) -> None:
    _exit(cmd_duplicates(_paths(files)))


@app.command("categorize")
def categorize_cmd(
    files: Annotated[list[Path], typer.Argument(help="Statement CSV files.", dir_okay=False)],
    *,
    database_url: DatabaseUrlOpt = None,
    explain: Annotated[bool, typer.Option(help="Show the rule that matched.")] = False,
) -> None:
    _exit(cmd_categorize(_paths(files), database_url=database_url, explain=explain))


@app.command("compare")
def compare_cmd(
    period1: Annotated[str, typer.Argument(help="First period key (YYYY-MM or week YYYY-MM-DD).")],
    period2: Annotated[str, typer.Argument(help="Second period key.")],
    files: FilesArg = None,
    *,
    database_url: DatabaseUrlOpt = None,
    analysis: AnalysisOpt = None,
    weekly: Annotated[bool, typer.Option(help="Compare Monday-based weeks.")] = False,
) -> None:
    _exit(
        cmd_compare(
            _paths(files),
            period1,
            period2,
            database_url=database_url,
            analysis_id=analysis,
            weekly=weekly,
        )
    )


@app.command("override")
def override_cmd(
    fingerprint: Annotated[str, typer.Argument(help="Transaction fingerprint (see categorize).")],
    category: Annotated[
        str | None, typer.Argument(help="Category; prompts interactively when omitted.")
    ] = None,
    *,
    clear: Annotated[bool, typer.Option(help="Remove the override instead.")] = False,
    database_url: DatabaseUrlOpt = None,
) -> None:
    _exit(cmd_override(fingerprint, category, database_url=database_url, clear=clear))


@budget_app.command("set")
def budget_set_cmd(
    category: str, amount: float, *, database_url: DatabaseUrlOpt = None
) -> None:
    _exit(cmd_budget_set(category, amount, database_url=database_url))


@budget_app.command("list")
def budget_list_cmd(*, database_url: DatabaseUrlOpt = None) -> None:
    _exit(cmd_budget_list(database_url=database_url))


@budget_app.command("delete")
def budget_delete_cmd(category: str, *, database_url: DatabaseUrlOpt = None) -> None:
    _exit(cmd_budget_delete(category, database_url=database_url))


@budget_app.command("status")
def budget_status_cmd(
    files: FilesArg = None,
    *,
    database_url: DatabaseUrlOpt = None,
    analysis: AnalysisOpt = None,
    month: Annotated[str | None, typer.Option(help="Month to evaluate (YYYY-MM).")] = None,
) -> None:
    _exit(
        cmd_budget_status(
            _paths(files), database_url=database_url, analysis_id=analysis, month=month
        )
    )


@analyses_app.command("list")
def analyses_list_cmd(*, database_url: DatabaseUrlOpt = None) -> None:
    _exit(cmd_analyses_list(database_url=database_url))


@analyses_app.command("rename")
def analyses_rename_cmd(
    analysis_id: int, name: str, *, database_url: DatabaseUrlOpt = None
) -> None:
    _exit(cmd_analyses_rename(analysis_id, name, database_url=database_url))


@analyses_app.command("delete")
def analyses_delete_cmd(analysis_id: int, *, database_url: DatabaseUrlOpt = None) -> None:
    _exit(cmd_analyses_delete(analysis_id, database_url=database_url))


PasswordOpt = Annotated[
    str | None,
    typer.Option(help=f"Backup password (else {BACKUP_PASSWORD_ENV}, else prompt)."),
]


@backup_app.command("export")
def backup_export_cmd(
    out: Path, *, password: PasswordOpt = None, database_url: DatabaseUrlOpt = None
) -> None:
    _exit(cmd_backup_export(str(out), password=password, database_url=database_url))


@backup_app.command("restore")
def backup_restore_cmd(
    backup_file: Path, *, password: PasswordOpt = None, database_url: DatabaseUrlOpt = None
) -> None:
    _exit(cmd_backup_restore(str(backup_file), password=password, database_url=database_url))


@app.callback(invoke_without_command=True)
def _root(
    ctx: typer.Context,
    *,
    log_level: Annotated[
        str | None,
        typer.Option(help="debug, info, warning or error (default warning)."),
    ] = None,
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    # Central logging setup so child loggers inherit configuration
    try:
        configure_logging(log_level)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise typer.Exit(2) from e

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


if __name__ == "__main__":  # pragma: no cover
    app()
