"""Allow ``python -m action_credentials``."""

from __future__ import annotations

from action_credentials.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
