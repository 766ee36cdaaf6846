"""Allow running FileLens as ``python -m filelens``."""

from .cli import main

if __name__ == "__main__":
    main()
