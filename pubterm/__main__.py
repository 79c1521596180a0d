"""Module entrypoint for the brokerage TUI.

Run:
  python -m pubterm
"""

from __future__ import annotations

from .main import main


if __name__ == "__main__":
    main()
