"""HTTP API for the Bookstall catalog."""
