"""polite-crawler command-line package."""
