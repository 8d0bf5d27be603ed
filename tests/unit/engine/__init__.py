"""
Tests for perception, target resolution and action execution.
"""
