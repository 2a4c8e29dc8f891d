"""Repository bootstrap: workflow rendering and creation."""
