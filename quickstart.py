#!/usr/bin/env python3
"""
Quick Start Script - Demonstrates semantic-editor core features

This script provides a quick demonstration of the main features
of semantic-editor v1.0: rename fix-up, batches and undo/redo.
"""

from semantic_editor import DictModelLoader


def main():
    print("=" * 60)
    print("Semantic Model Editor v1.0 - Quick Start Demo")
    print("=" * 60)
    print()

    model = {
        "name": "Contoso",
        "tables": [
            {
                "name": "Sales",
                "columns": [
                    {"name": "Amount", "data_type": "double"},
                    {"name": "Cost", "data_type": "double"},
                ],
                "measures": [
                    {"name": "Revenue", "expression": "SUM(Sales[Amount])"},
                    {"name": "Margin", "expression": "[Revenue] - SUM(Sales[Cost])"},
                    {
                        "name": "Label",
                        "expression": 'IF([Margin] > 0, "[Revenue] is up", "down") // [Revenue]',
                    },
                ],
            }
        ],
    }

    session = DictModelLoader(model).load()
    revenue = session.find_measure("Revenue")
    margin = session.find_measure("Margin")
    label = session.find_measure("Label")

    # Demo 1: Rename with fix-up
    print("=" * 60)
    print("Demo 1: Rename a measure")
    print("=" * 60)
    session.rename(revenue, "Net Revenue")
    print(f"  Margin: {margin.expression}")
    print(f"  Label:  {label.expression}  (literal and comment untouched)")
    print()

    # Demo 2: One undo reverts the rename and every fix-up
    print("=" * 60)
    print("Demo 2: Undo")
    print("=" * 60)
    session.undo()
    print(f"  Revenue name: {revenue.name}")
    print(f"  Margin: {margin.expression}")
    print()

    # Demo 3: Batch several edits into one undo step
    print("=" * 60)
    print("Demo 3: Batch")
    print("=" * 60)
    with session.batch("Restructure"):
        session.rename("Sales", "Fact Sales")
        session.rename("'Fact Sales'[Amount]", "Gross")
    print(f"  Revenue: {revenue.expression}")
    print(f"  History: {session.undo_manager.history()}")
    session.undo()
    print(f"  After undo: {revenue.expression}")
    print()

    # Demo 4: Dependents
    print("=" * 60)
    print("Demo 4: Who uses [Revenue]?")
    print("=" * 60)
    for node in sorted(session.get_dependents(revenue), key=lambda n: n.name):
        print(f"  - {node.name}: {node.expression}")


if __name__ == "__main__":
    main()
