"""Module entrypoint for ``python -m slugdeploy``.

All argument parsing and deploy setup happen in ``slugdeploy.cli``.
"""

from .cli import main


if __name__ == "__main__":
    main()
