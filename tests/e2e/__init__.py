"""
End-to-end tests for handoff.

These tests run real master processes and drive restarts with signals.
"""
