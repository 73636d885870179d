"""
Entry point for running bridgewatch as a module.

Usage: python -m bridgewatch [command] [options]
"""
from .cli import main

if __name__ == "__main__":
    main()
