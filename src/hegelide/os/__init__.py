"""Platform layer: PTY handles and process-table queries."""
