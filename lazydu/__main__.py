"""Module entrypoint for ``python -m lazydu``.

All argument parsing and runtime setup happen in ``lazydu.cli``.
"""

from .cli import main


if __name__ == "__main__":
    main()
