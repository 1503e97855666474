"""Module entrypoint for ``python -m simkeeper``.

Argument parsing and service setup happen in ``simkeeper.cli``.
"""

from .cli import main


if __name__ == "__main__":
    main()
