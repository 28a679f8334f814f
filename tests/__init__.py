"""
Test suite for dbc-engine

Contains:
- tests/unit/          : Unit tests for math, domain models, quotes, validation and the designer
"""
