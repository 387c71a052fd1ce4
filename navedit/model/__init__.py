"""Navigation fixes, the edit buffer and the operations that edit it."""
