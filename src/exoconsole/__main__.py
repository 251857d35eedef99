"""Allow ``python -m exoconsole``."""

from exoconsole.cli import main

if __name__ == "__main__":
    main()
