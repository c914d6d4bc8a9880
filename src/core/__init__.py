"""Pure conversational decision core.

Nothing in this package performs I/O or reads the environment: catalog
entries, corpus chunks and the caller's flow state all arrive as arguments,
and every turn returns a fresh value.
"""
