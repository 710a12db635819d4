"""Message types and result writers."""
