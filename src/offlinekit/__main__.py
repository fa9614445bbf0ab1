"""
Entry point for running offlinekit as a module.

Usage:
    python -m offlinekit [command] [options]

Example:
    python -m offlinekit --user teacher-1 records save student -d '{"name": "Asha"}'
    python -m offlinekit --user teacher-1 offline status
    python -m offlinekit --user teacher-1 offline sync
"""

from offlinekit.cli.main import cli

if __name__ == "__main__":
    cli()
