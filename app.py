#!/usr/bin/env python3
"""Entry point for the hosted verse engine playground."""

from verse_engine.app.app import main

if __name__ == "__main__":
    main()
