"""Core content layer: codec, repository access and content operations."""
