"""Git access: repository queries, WIP scanning and stashing."""
