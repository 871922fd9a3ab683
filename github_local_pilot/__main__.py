"""Module entrypoint for `python -m github_local_pilot`."""

from __future__ import annotations

from .cli import run


def main() -> None:
    run()


if __name__ == "__main__":
    main()
