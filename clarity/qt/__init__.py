"""Qt threading layer: background workers for the workspace."""
