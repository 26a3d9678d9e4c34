"""Entry point for `python -m kubesafe`."""

from kubesafe.cli.commands import app

if __name__ == "__main__":
    app()
