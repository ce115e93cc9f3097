"""Allow running as ``python -m cookiejar_events``."""

from .cli import main

if __name__ == "__main__":
    main()
