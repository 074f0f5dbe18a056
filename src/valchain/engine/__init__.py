"""Execution engine: compiled field validators, array batches, recursion, Schema."""
