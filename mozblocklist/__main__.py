"""Module entrypoint for `python -m mozblocklist`."""

from mozblocklist.cli import app


def main() -> None:
    app()


if __name__ == "__main__":
    main()
