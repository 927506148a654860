"""Contexts ("tags"): the Tag model and the ContextManager (state.json)."""
