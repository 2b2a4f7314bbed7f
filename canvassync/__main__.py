"""Entry point for ``python -m canvassync``."""

from canvassync.cli.main import app

if __name__ == "__main__":
    app()
