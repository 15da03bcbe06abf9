"""Utility functions for the command line front end."""
from pathlib import Path

from rich.console import Console

err_console = Console(stderr=True)

DOCUMENT_SUFFIXES = (".pdf", ".docx", ".txt")


def expand_document_paths(paths: tuple[str, ...], suffixes: tuple[str, ...] = DOCUMENT_SUFFIXES) -> list[str]:
    """Expand paths to include all syllabus documents in directories.

    Args:
        paths: Tuple of file paths and/or directory paths
        suffixes: File extensions picked up from directories

    Returns:
        List of document paths with directories expanded

    Raises:
        SystemExit: If a path is missing or a directory contains no documents
    """
    documents: list[str] = []

    for path_str in paths:
        path = Path(path_str)

        if path.is_file():
            documents.append(path_str)
        elif path.is_dir():
            found = sorted(p for p in path.iterdir() if p.is_file() and p.suffix.lower() in suffixes)

            if not found:
                err_console.print(
                    f"[red]Error:[/red] Directory '{path_str}' contains no {'/'.join(suffixes)} files."
                )
                raise SystemExit(1)

            documents.extend(str(p) for p in found)
        else:
            err_console.print(f"[red]Error:[/red] Path '{path_str}' does not exist.")
            raise SystemExit(1)

    return documents
