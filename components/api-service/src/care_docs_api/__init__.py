"""care-docs API service package."""
