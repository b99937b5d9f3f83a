"""Linear API access."""
