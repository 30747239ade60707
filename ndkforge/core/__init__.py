"""Core services: hashing, archives, downloads, markers, locking and workspace layout."""
