"""zaycode CLI entry point."""

from zaycode.cli import app

if __name__ == "__main__":
    app()
