"""Allow ``python -m playoff_pool.cli``."""

from __future__ import annotations

from playoff_pool.cli.main import app

if __name__ == "__main__":
    app()
