"""
sshm CLI entry point.

Usage:
    python -m sshm db1
    python -m sshm list
"""

from sshm.cli import main

if __name__ == "__main__":
    main()
