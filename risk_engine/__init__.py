"""
Payment Risk Engine

Card validation, card tokenization and multi-factor fraud risk scoring
for payment authorization flows.
"""

__version__ = "1.0.0"
