"""Allow ``python -m memsync``."""

from memsync.app.cli import main

if __name__ == "__main__":
    main()
