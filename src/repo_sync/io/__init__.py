"""I/O ring: git workspaces, PostgreSQL loaders, repositories and credentials."""
