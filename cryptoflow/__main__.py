"""Main entry point when executing cryptoflow as a package.

This allows running the package using python -m cryptoflow.
"""

from cryptoflow.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
