"""Entry point for python -m chatcompact."""

from chatcompact.cli.commands import app

if __name__ == "__main__":
    app()
