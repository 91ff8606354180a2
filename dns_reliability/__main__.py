"""
Entry point for running dns_reliability as a module.

Usage: python -m dns_reliability [OPTIONS] COMMAND [ARGS]...
"""

from .cli import main

if __name__ == "__main__":
    main()
