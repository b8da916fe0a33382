# ruff: noqa: I001
"""CLI for the ``statement_import`` package.

Typer console interface over :mod:`statement_import.api`. A local ``.env`` is
loaded with ``python-dotenv`` (without overriding the environment) before any
command runs, so ``DATABASE_URL``, ``OPENAI_API_KEY`` and the ``SI_*`` tunables
can live there. Results are printed to stdout as JSON.

Exit codes: 0 success, 1 failure, 2 rejected input (bad file or mapping).
"""

from __future__ import annotations

import json
import mimetypes
from pathlib import Path
from typing import Any

import typer
from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError
from rich.console import Console
from typer.models import OptionInfo

from .errors import ImportRejected
from .logging_setup import configure_logging
from .models import ColumnMapping, CommitOptions, ImportRule, RuleAction, RuleCondition, SignPolicy

_err = Console(stderr=True)

EXIT_FAILURE = 1
EXIT_REJECTED = 2


# ---- Small module-level helpers ------------------------------------------------


def _emit(payload: Any) -> None:
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json")
    elif isinstance(payload, list):
        payload = [p.model_dump(mode="json") if isinstance(p, BaseModel) else p for p in payload]
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


def _fail(message: str, code: int = EXIT_FAILURE) -> typer.Exit:
    _err.print(f"Error: {message}", markup=False, highlight=False)
    return typer.Exit(code)


def _read_upload(path: Path) -> tuple[bytes, str, str | None]:
    try:
        data = path.read_bytes()
    except OSError as e:
        raise _fail(f"cannot read {path}: {e}") from e
    content_type, _ = mimetypes.guess_type(path.name)
    return data, path.name, content_type


def _mapping_from_options(
    *,
    date: str | None,
    description: str | None,
    amount: str | None,
    type_: str | None,
    category: str | None,
    note: str | None,
    sign_policy: SignPolicy,
) -> ColumnMapping | None:
    """Mapping from explicit column options; ``None`` when none were given."""
    columns = {
        "date": date,
        "description": description,
        "amount": amount,
        "type": type_,
        "category": category,
        "note": note,
    }
    if not any(v for v in columns.values()):
        return None
    return ColumnMapping(**columns, sign_policy=sign_policy)


def _resolve_mapping(
    data: bytes,
    filename: str,
    content_type: str | None,
    explicit: ColumnMapping | None,
    *,
    user_id: str | None,
    sheet: str | None,
    database_url: str | None,
    sign_policy: SignPolicy,
) -> ColumnMapping:
    """Explicit columns win; else a saved preset; else the suggested mapping."""
    if explicit is not None:
        return explicit
    from .api import detect_columns

    detected = detect_columns(
        data, filename, content_type, user_id=user_id, sheet=sheet, database_url=database_url
    )
    if detected.preset is not None:
        return detected.preset.mapping
    return detected.suggested_mapping.model_copy(update={"sign_policy": sign_policy})


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Import bank/credit-card statements (CSV, XLSX, XLS) into the ledger with "
        "deduplication and user rules. Loads a local .env before running."
    ),
)

# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults). Typer inspects these when used as default values below.
FILE_ARGUMENT = typer.Argument(
    ..., help="Statement file (.csv, .xlsx or .xls)", dir_okay=False, exists=True, readable=True
)
USER_OPTION: OptionInfo = typer.Option(..., "--user-id", help="Owner of the imported records.")
OPTIONAL_USER_OPTION: OptionInfo = typer.Option(
    None, "--user-id", help="Look up a saved preset for this user."
)
DATABASE_URL_OPTION: OptionInfo = typer.Option(
    None, "--database-url", help="Override DATABASE_URL (falls back to env var)."
)
SHEET_OPTION: OptionInfo = typer.Option(None, "--sheet", help="Worksheet name (default: first).")
DATE_OPTION: OptionInfo = typer.Option(None, "--date-column", help="Header of the date column.")
DESCRIPTION_OPTION: OptionInfo = typer.Option(
    None, "--description-column", help="Header of the description column."
)
AMOUNT_OPTION: OptionInfo = typer.Option(None, "--amount-column", help="Header of the amount column.")
TYPE_OPTION: OptionInfo = typer.Option(None, "--type-column", help="Header of an income/expense column.")
CATEGORY_OPTION: OptionInfo = typer.Option(None, "--category-column", help="Header of a category column.")
NOTE_OPTION: OptionInfo = typer.Option(None, "--note-column", help="Header of a note column.")
SIGN_POLICY_OPTION: OptionInfo = typer.Option(
    SignPolicy.NEGATIVE_IS_INCOME,
    "--sign-policy",
    help="How a bare negative amount is classified.",
    case_sensitive=False,
)
ACCOUNT_OPTION: OptionInfo = typer.Option(
    None, "--account-id", help="Account identifier folded into the dedupe hash."
)
APPLY_SUGGESTED_OPTION: OptionInfo = typer.Option(
    False,
    "--apply-suggested-category/--no-apply-suggested-category",
    help="Use suggested categories where a row has none.",
)


@app.command("columns")
def columns_cmd(
    path: Path = FILE_ARGUMENT,
    *,
    sheet: str | None = SHEET_OPTION,
    user_id: str | None = OPTIONAL_USER_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Show detected columns, sheets, suggested mapping and header signature."""

    from .api import detect_columns

    data, filename, content_type = _read_upload(path)
    try:
        detected = detect_columns(
            data, filename, content_type, user_id=user_id, sheet=sheet, database_url=database_url
        )
    except ImportRejected as e:
        raise _fail(f"{e.reason}: {e}", EXIT_REJECTED) from e
    except Exception as e:
        raise _fail(f"detect columns failed: {e}") from e
    _emit(detected)


@app.command("preview")
def preview_cmd(
    path: Path = FILE_ARGUMENT,
    *,
    user_id: str = USER_OPTION,
    date: str | None = DATE_OPTION,
    description: str | None = DESCRIPTION_OPTION,
    amount: str | None = AMOUNT_OPTION,
    type_: str | None = TYPE_OPTION,
    category: str | None = CATEGORY_OPTION,
    note: str | None = NOTE_OPTION,
    sign_policy: SignPolicy = SIGN_POLICY_OPTION,
    account_id: str | None = ACCOUNT_OPTION,
    sheet: str | None = SHEET_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
    apply_suggested_category: bool = APPLY_SUGGESTED_OPTION,
) -> None:
    """Dry-run the first rows and estimate duplicates; nothing is written."""

    from .api import preview

    data, filename, content_type = _read_upload(path)
    explicit = _mapping_from_options(
        date=date,
        description=description,
        amount=amount,
        type_=type_,
        category=category,
        note=note,
        sign_policy=sign_policy,
    )
    try:
        mapping = _resolve_mapping(
            data,
            filename,
            content_type,
            explicit,
            user_id=user_id,
            sheet=sheet,
            database_url=database_url,
            sign_policy=sign_policy,
        )
        result = preview(
            data,
            filename,
            content_type,
            mapping,
            user_id=user_id,
            account_id=account_id,
            sheet=sheet,
            database_url=database_url,
            apply_suggested_category=apply_suggested_category,
        )
    except ImportRejected as e:
        raise _fail(f"{e.reason}: {e}", EXIT_REJECTED) from e
    except Exception as e:
        raise _fail(f"preview failed: {e}") from e
    _emit(result)


@app.command("commit")
def commit_cmd(
    path: Path = FILE_ARGUMENT,
    *,
    user_id: str = USER_OPTION,
    date: str | None = DATE_OPTION,
    description: str | None = DESCRIPTION_OPTION,
    amount: str | None = AMOUNT_OPTION,
    type_: str | None = TYPE_OPTION,
    category: str | None = CATEGORY_OPTION,
    note: str | None = NOTE_OPTION,
    sign_policy: SignPolicy = SIGN_POLICY_OPTION,
    account_id: str | None = ACCOUNT_OPTION,
    sheet: str | None = SHEET_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
    skip_duplicates: bool = typer.Option(
        True, help="Report existing records as skipped duplicates."
    ),
    overwrite_duplicates: bool = typer.Option(
        False, help="Overwrite existing records that share the dedupe hash."
    ),
    enrich: bool = typer.Option(True, help="Ask the enrichment service for suggestions."),
    apply_suggested_category: bool = APPLY_SUGGESTED_OPTION,
) -> None:
    """Import the whole file into the ledger."""

    from .api import commit

    data, filename, content_type = _read_upload(path)
    explicit = _mapping_from_options(
        date=date,
        description=description,
        amount=amount,
        type_=type_,
        category=category,
        note=note,
        sign_policy=sign_policy,
    )
    options = CommitOptions(
        skip_duplicates=skip_duplicates,
        overwrite_duplicates=overwrite_duplicates,
        use_enrichment=enrich,
        apply_suggested_category=apply_suggested_category,
        account_id=account_id,
    )
    try:
        mapping = _resolve_mapping(
            data,
            filename,
            content_type,
            explicit,
            user_id=user_id,
            sheet=sheet,
            database_url=database_url,
            sign_policy=sign_policy,
        )
        result = commit(
            data,
            filename,
            content_type,
            mapping,
            user_id=user_id,
            options=options,
            sheet=sheet,
            database_url=database_url,
        )
    except ImportRejected as e:
        raise _fail(f"{e.reason}: {e}", EXIT_REJECTED) from e
    except Exception as e:
        raise _fail(f"commit failed: {e}") from e
    _emit(result)


@app.command("save-preset")
def save_preset_cmd(
    path: Path = FILE_ARGUMENT,
    *,
    user_id: str = USER_OPTION,
    name: str = typer.Option(..., "--name", help="Preset display name."),
    date: str | None = DATE_OPTION,
    description: str | None = DESCRIPTION_OPTION,
    amount: str | None = AMOUNT_OPTION,
    type_: str | None = TYPE_OPTION,
    category: str | None = CATEGORY_OPTION,
    note: str | None = NOTE_OPTION,
    sign_policy: SignPolicy = SIGN_POLICY_OPTION,
    sheet: str | None = SHEET_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Remember a column mapping for files with this header set."""

    from .api import detect_columns, save_preset
    from .ingest.columns import resolve_mapping

    data, filename, content_type = _read_upload(path)
    explicit = _mapping_from_options(
        date=date,
        description=description,
        amount=amount,
        type_=type_,
        category=category,
        note=note,
        sign_policy=sign_policy,
    )
    try:
        detected = detect_columns(data, filename, content_type, sheet=sheet)
        mapping = resolve_mapping(
            explicit or detected.suggested_mapping.model_copy(update={"sign_policy": sign_policy}),
            detected.columns,
        )
        preset = save_preset(
            user_id, name, mapping, signature=detected.signature, database_url=database_url
        )
    except ImportRejected as e:
        raise _fail(f"{e.reason}: {e}", EXIT_REJECTED) from e
    except Exception as e:
        raise _fail(f"save preset failed: {e}") from e
    _emit(preset)


@app.command("add-rule")
def add_rule_cmd(
    *,
    user_id: str = USER_OPTION,
    name: str = typer.Option(..., "--name", help="Rule display name."),
    value: str = typer.Option(..., "--match", help="Substring or regex to look for."),
    regex: bool = typer.Option(False, "--regex", help="Treat --match as a regular expression."),
    field: str = typer.Option(
        "description", "--field", help="description, note or merchant_canonical."
    ),
    set_category: str | None = typer.Option(None, "--category", help="Category to assign."),
    tags: list[str] | None = typer.Option(None, "--tag", help="Tag to add (repeatable)."),
    order: int | None = typer.Option(None, "--order", help="Evaluation order (ascending)."),
    disabled: bool = typer.Option(False, "--disabled", help="Store the rule disabled."),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Create an import rule."""

    from .api import save_rule

    try:
        rule = ImportRule(
            name=name,
            sort_order=order,
            enabled=not disabled,
            when=RuleCondition(field=field, kind="regex" if regex else "contains", value=value),
            action=RuleAction(category=set_category, tags=tuple(tags or ())),
        )
    except ValidationError as e:
        raise _fail(f"invalid rule: {e}", EXIT_REJECTED) from e
    try:
        saved = save_rule(user_id, rule, database_url=database_url)
    except Exception as e:
        raise _fail(f"save rule failed: {e}") from e
    _emit(saved)


@app.command("list-rules")
def list_rules_cmd(
    *,
    user_id: str = USER_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """List rules in evaluation order."""

    from .api import list_rules

    try:
        rules = list_rules(user_id, database_url=database_url)
    except Exception as e:
        raise _fail(f"list rules failed: {e}") from e
    _emit(rules)


@app.command("delete-rule")
def delete_rule_cmd(
    rule_id: int = typer.Argument(..., help="Rule id."),
    *,
    user_id: str = USER_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Delete one rule."""

    from .api import delete_rule

    try:
        deleted = delete_rule(user_id, rule_id, database_url=database_url)
    except Exception as e:
        raise _fail(f"delete rule failed: {e}") from e
    if not deleted:
        raise _fail(f"rule {rule_id} not found")
    _emit({"deleted": rule_id})


@app.command("apply-rules")
def apply_rules_cmd(
    *,
    user_id: str = USER_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Re-apply enabled rules to already imported records."""

    from .api import apply_rules_to_existing

    try:
        updated = apply_rules_to_existing(user_id, database_url=database_url)
    except Exception as e:
        raise _fail(f"apply rules failed: {e}") from e
    _emit({"updated": updated})


@app.callback()
def _root() -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures package logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()


if __name__ == "__main__":  # pragma: no cover
    app()
