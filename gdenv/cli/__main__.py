"""
Entry point for running gdenv CLI as a module.

Usage: python -m gdenv.cli [command] [options]
"""

from .parser import main

if __name__ == "__main__":
    main()
