"""Domain layer: pure value types with no engine or plugin dependencies.

INVARIANT: Nothing in this package imports from engine/, registry/ or config/.
"""
