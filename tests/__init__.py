"""
Test suite for the exposure/MTM engine

Contains:
- tests/unit/          : Unit tests for individual modules
"""
