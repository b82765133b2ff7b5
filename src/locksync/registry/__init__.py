"""Registry and find-links clients."""
