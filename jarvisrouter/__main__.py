"""Allow running as ``python -m jarvisrouter``."""

from jarvisrouter.cli.main import main

if __name__ == "__main__":
    main()
