"""Commands of the guidelint CLI."""
