"""Allow ``python -m vmcode_dbg``."""

from .cli import main


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
