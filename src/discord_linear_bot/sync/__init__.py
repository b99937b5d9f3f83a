"""Synchronization between Discord threads and Linear issues."""
