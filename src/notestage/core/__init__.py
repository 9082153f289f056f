"""Build-time core: permalink resolution and markdown rendering."""
