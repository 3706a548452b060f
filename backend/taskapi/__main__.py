"""Allows `python -m taskapi` to start the server."""

from taskapi.server import main

if __name__ == "__main__":
    main()
