"""
repo-sync orchestration package.

Wires concrete I/O into the sync handlers and exposes them to the surrounding
job service, the CLI and Dagster.
"""
