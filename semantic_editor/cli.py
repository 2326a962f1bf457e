"""
Command-line interface for the semantic model editor v1.0.

This module provides a command-line interface that loads a model from a JSON
file, applies renames and moves (with formula fix-up), replays undo/redo,
lists dependents and exports the edited model.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from colorama import Fore, Style, init
from tabulate import tabulate

from semantic_editor import DictModelLoader, EditorConfig, ModelSession, model_to_dict
from semantic_editor.exceptions import EditorError
from semantic_editor.models.node import Node
from semantic_editor.models.node_kind import NodeKind

init(autoreset=True)
USE_COLOR = True


def _paint(color: str, msg: str) -> str:
    if USE_COLOR:
        return f"{color}{msg}{Style.RESET_ALL}"
    return msg


def print_success(msg: str) -> None:
    """Print success message."""
    print(_paint(Fore.GREEN, f"[OK] {msg}"))


def print_error(msg: str) -> None:
    """Print error message."""
    print(_paint(Fore.RED, f"[ERROR] {msg}"), file=sys.stderr)


def print_warning(msg: str) -> None:
    """Print warning message."""
    print(_paint(Fore.YELLOW, f"[WARN] {msg}"))


def print_info(msg: str) -> None:
    """Print info message."""
    print(_paint(Fore.CYAN, msg))


def main() -> None:
    """
    CLI main entry point.

    Supported commands:
        # Summary of a model
        semantic-editor model.json

        # Rename with formula fix-up
        semantic-editor model.json --rename "[Total]=Total Sales"

        # Move a measure to another table
        semantic-editor model.json --move "[Total]=Finance"

        # Undo / redo after the edits
        semantic-editor model.json --rename Sales=Orders --undo 1

        # Dependents of an object
        semantic-editor model.json --dependents "Sales[Amount]"

        # Export the edited model
        semantic-editor model.json --rename Sales=Orders --export edited.json
    """
    parser = argparse.ArgumentParser(
        prog="semantic-editor",
        description="Semantic Model Editor - v1.0",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show a model summary
  %(prog)s model.json

  # Rename a measure; dependent formulas are rewritten
  %(prog)s model.json --rename "[Total]=Total Sales"

  # Rename a table and undo it again
  %(prog)s model.json --rename "Sales=Orders" --undo 1

  # List the formulas that reference a column
  %(prog)s model.json --dependents "Sales[Amount]" --format table

  # Save the result
  %(prog)s model.json --rename "Sales=Orders" --export edited.json
        """,
    )

    # === Input parameters ===
    input_group = parser.add_argument_group("Input Options")
    input_group.add_argument("model_file", help="Model file to edit (JSON format)")

    # === Edit parameters ===
    edit_group = parser.add_argument_group("Edit Options")
    edit_group.add_argument(
        "--rename",
        "-r",
        action="append",
        default=[],
        metavar="PATH=NEW_NAME",
        help="Rename an object (e.g., 'Sales[Amount]=Net Amount'); repeatable",
    )
    edit_group.add_argument(
        "--move",
        "-m",
        action="append",
        default=[],
        metavar="PATH=TABLE",
        help="Move a measure to another table (e.g., '[Total]=Finance'); repeatable",
    )
    edit_group.add_argument(
        "--undo", type=int, default=0, metavar="N", help="Undo the last N edits"
    )
    edit_group.add_argument(
        "--redo", type=int, default=0, metavar="N", help="Redo N undone edits"
    )
    edit_group.add_argument(
        "--no-fixup",
        action="store_true",
        help="Do not rewrite formulas after renames and moves",
    )

    # === Query parameters ===
    query_group = parser.add_argument_group("Query Options")
    query_group.add_argument(
        "--dependents",
        "-d",
        metavar="PATH",
        help="List the formulas referencing an object",
    )

    # === Output parameters ===
    output_group = parser.add_argument_group("Output Options")
    output_group.add_argument(
        "--format",
        "-f",
        choices=["json", "table", "pretty"],
        default="pretty",
        help="Output format (default: pretty)",
    )
    output_group.add_argument(
        "--export", "-o", metavar="FILE", help="Export the edited model to file"
    )
    output_group.add_argument(
        "--no-color", action="store_true", help="Disable colored output"
    )
    output_group.add_argument(
        "--no-warnings", action="store_true", help="Suppress warnings"
    )
    output_group.add_argument(
        "--verbose", "-v", action="store_true", help="Show debug logging"
    )

    args = parser.parse_args()

    if args.no_color:
        global USE_COLOR
        USE_COLOR = False

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        # 1. Load the model
        model_file = Path(args.model_file)
        if not model_file.exists():
            print_error(f"File not found: {args.model_file}")
            sys.exit(1)

        print_info(f"Loading model from: {model_file}")
        config = EditorConfig(fixup_enabled=not args.no_fixup)
        session = DictModelLoader.from_json_file(model_file, config).load()
        stats = session.graph.get_statistics()
        print_success(
            f"Model '{session.model.name}' loaded: {stats['table']} table(s), "
            f"{stats['measure']} measure(s)."
        )

        # 2. Apply edits
        for edit in args.rename:
            handle_rename(session, edit)
        for edit in args.move:
            handle_move(session, edit)

        # 3. Replay history
        if args.undo:
            handle_undo(session, args.undo)
        if args.redo:
            handle_redo(session, args.redo)

        # 4. Queries
        if args.dependents:
            handle_dependents(session, args.dependents, args.format)
        elif not (args.rename or args.move or args.undo or args.redo):
            handle_summary(session, args.format)

        # 5. Export (if needed)
        if args.export:
            handle_export(session, args.export)

        # 6. Show warnings (if any)
        if not args.no_warnings:
            show_warnings(session)

    except EditorError as e:
        print_error(f"Edit failed: {e}")
        sys.exit(1)


def parse_assignment(edit: str) -> tuple[str, str]:
    """
    Parse an edit argument.

    Args:
        edit: Format "PATH=VALUE"; the last '=' separates the two parts.

    Returns:
        (path, value)

    Raises:
        ValueError: If format is incorrect
    """
    path, sep, value = edit.rpartition("=")
    if not sep or not path.strip() or not value.strip():
        raise ValueError(f"Invalid edit: '{edit}'. Expected format: 'PATH=VALUE'")
    return path.strip(), value.strip()


def handle_rename(session: ModelSession, edit: str) -> None:
    """Handle --rename command."""
    try:
        path, new_name = parse_assignment(edit)
    except ValueError as e:
        print_error(str(e))
        sys.exit(1)

    node = session.resolve_path(path)
    old_name = node.name
    session.last_fixup = None
    session.rename(node, new_name)
    print_success(f"Renamed {node.kind.value} '{old_name}' to '{new_name}'")
    report_fixup(session)


def handle_move(session: ModelSession, edit: str) -> None:
    """Handle --move command."""
    try:
        path, table_name = parse_assignment(edit)
    except ValueError as e:
        print_error(str(e))
        sys.exit(1)

    node = session.resolve_path(path)
    table = session.resolve_path(table_name)
    session.last_fixup = None
    session.move(node, table)
    print_success(f"Moved {node.kind.value} '{node.name}' to '{table.name}'")
    report_fixup(session)


def report_fixup(session: ModelSession) -> None:
    result = session.last_fixup
    if result is None:
        return
    if result.rewritten:
        print(
            f"  {result.references_updated} reference(s) updated in "
            f"{len(result.rewritten)} formula(s): "
            f"{result.old_reference} -> {result.new_reference}"
        )
    for node_id in result.failed:
        print_warning(f"Formula of '{session.get_node(node_id).name}' could not be updated")


def handle_undo(session: ModelSession, count: int) -> None:
    """Handle --undo command."""
    for _ in range(count):
        label = session.undo_manager.undo_label
        if not session.undo():
            print_warning("Nothing left to undo")
            return
        print_success(f"Undid: {label}")


def handle_redo(session: ModelSession, count: int) -> None:
    """Handle --redo command."""
    for _ in range(count):
        label = session.undo_manager.redo_label
        if not session.redo():
            print_warning("Nothing left to redo")
            return
        print_success(f"Redid: {label}")


def _describe(session: ModelSession, node: Node) -> str:
    return session.fixup.canonical_reference(node)


def handle_dependents(session: ModelSession, path: str, format: str) -> None:
    """Handle --dependents command."""
    target = session.resolve_path(path)
    dependents = sorted(session.get_dependents(target), key=lambda n: n.id)

    print_info(f"\nFormulas referencing {_describe(session, target)}:\n")
    if not dependents:
        print_warning(f"No formula references {path}")
        return

    rows = [
        [_describe(session, node), node.kind.value, node.expression]
        for node in dependents
    ]
    if format == "json":
        data = [{"object": r[0], "kind": r[1], "expression": r[2]} for r in rows]
        print(json.dumps(data, indent=2, ensure_ascii=False))
    elif format == "table":
        print(tabulate(rows, headers=["Object", "Kind", "Expression"], tablefmt="github"))
    else:
        for name, kind, expression in rows:
            print(f"  - {name} ({kind}): {expression}")


def handle_summary(session: ModelSession, format: str) -> None:
    """Show model summary."""
    if format == "json":
        print(json.dumps(model_to_dict(session), indent=2, ensure_ascii=False))
        return

    graph = session.graph
    rows = []
    for table in graph.children(session.model.id, NodeKind.TABLE):
        columns = graph.children(table.id, NodeKind.COLUMN)
        measures = graph.children(table.id, NodeKind.MEASURE)
        rows.append([table.name, len(columns), len(measures)])

    if format == "table":
        print(tabulate(rows, headers=["Table", "Columns", "Measures"], tablefmt="github"))
        return

    print_info("\n" + "=" * 60)
    print_info("Model Summary")
    print_info("=" * 60 + "\n")
    for name, columns, measures in rows:
        print(f"  {name}: {columns} column(s), {measures} measure(s)")
    index_stats = session.index.get_statistics()
    print()
    print(f"Indexed formulas: {index_stats['indexed_expressions']}")
    print(f"Reference edges: {index_stats['total_edges']}")


def handle_export(session: ModelSession, output_file: str) -> None:
    """Export the edited model."""
    output_path = Path(output_file)
    print_info(f"\nExporting model to: {output_path}")
    output_path.write_text(
        json.dumps(model_to_dict(session), indent=2, ensure_ascii=False), encoding="utf-8"
    )
    print_success(f"Exported to {output_path}")


def show_warnings(session: ModelSession) -> None:
    """Show warning messages."""
    warnings = session.warnings.get_all()
    if warnings:
        print_warning(f"\n{len(warnings)} warning(s):")
        for i, warning in enumerate(warnings, 1):
            print(f"  {i}. [{warning.level}] {warning.message}")


if __name__ == "__main__":
    main()
