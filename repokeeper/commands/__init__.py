"""Click commands for the repokeeper CLI."""
