"""FileLens test package."""
