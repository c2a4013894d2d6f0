"""Cookie lifecycle: acquisition, injection and response reconciliation."""
