"""rowsmith command-line interface (typer + rich)."""
