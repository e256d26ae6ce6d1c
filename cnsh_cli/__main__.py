"""Module entrypoint so ``python -m cnsh_cli`` behaves like the ``cnsh`` script."""

from __future__ import annotations

import sys

from .main import main


def console_main() -> int:
    return main(sys.argv[1:])


if __name__ == "__main__":
    raise SystemExit(console_main())
