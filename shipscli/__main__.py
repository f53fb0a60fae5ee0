"""Main entry point when executing shipscli as a package.

This allows running the package using python -m shipscli.
"""

from shipscli.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
