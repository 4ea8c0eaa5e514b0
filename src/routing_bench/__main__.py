from __future__ import annotations

from .cli import app


def main() -> None:
    """
    Console entrypoint for `routing-bench`.

    All CLI definitions live in `routing_bench.cli`.
    """
    app(prog_name="routing-bench")


if __name__ == "__main__":
    main()
