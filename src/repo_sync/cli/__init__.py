"""Command-line entry points for the repo-sync worker."""
