"""
Main entry point for the signalrelay package.
Run with: python -m signalrelay
"""
import sys

from .server import main

if __name__ == "__main__":
    sys.exit(main())
