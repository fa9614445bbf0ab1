"""Shared output formatting. NO class - just functions."""

import json

import click


def print_json(data: dict | list) -> None:
    """Print JSON data formatted."""
    click.echo(json.dumps(data, indent=2, sort_keys=True, default=str))


def print_error(message: str) -> None:
    """Print error message in red."""
    click.echo(click.style(f"Error: {message}", fg="red"), err=True)


def print_success(message: str) -> None:
    """Print success message in green."""
    click.echo(click.style(message, fg="green"))


def _truncate(text: str, max_len: int = 40) -> str:
    """Truncate text with ellipsis if too long."""
    return text[:max_len-3] + "..." if len(text) > max_len else text


def table(headers: list[str], rows: list[list[str]]) -> None:
    """Print simple table for list commands."""
    rows = [[_truncate(str(cell)) for cell in row] for row in rows]

    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            if i < len(widths):
                widths[i] = max(widths[i], len(cell))

    header_line = "│ " + " │ ".join(h.ljust(widths[i]) for i, h in enumerate(headers)) + " │"
    sep_line = "├" + "─" + "─┼─".join("─" * w for w in widths) + "─┤"

    click.echo("╭" + "─" * (len(header_line) - 2) + "╮")
    click.echo(header_line)
    click.echo(sep_line)
    for row in rows:
        cells = [row[i].ljust(widths[i]) if i < len(row) else " " * widths[i]
                 for i, _ in enumerate(headers)]
        click.echo("│ " + " │ ".join(cells) + " │")
    click.echo("╰" + "─" * (len(header_line) - 2) + "╯")
