"""Editing session components: word counting, autosave and focus timer."""
