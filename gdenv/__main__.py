"""
Entry point for running gdenv as a module.

Usage: python -m gdenv [command] [options]
"""

from gdenv.cli.parser import main

if __name__ == "__main__":
    main()
