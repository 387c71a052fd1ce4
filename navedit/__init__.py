"""Navigation edit buffer, editing operations and navigation models."""
