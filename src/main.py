"""
AutoCapCheck - fleet-wide heterogeneous-hardware capability check.

Runs the CLI without installing the package (python src/main.py ...).
"""

from autocapcheck.interface.cli import main


if __name__ == "__main__":
    main()
