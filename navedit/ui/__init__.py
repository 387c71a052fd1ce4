"""Qt bridge between an edit session and a presentation layer."""
