"""Sender Pattern Learner - learns one-way sender patterns from inbound mail.

This package watches mail from a single sender, decides whether that sender
only ever broadcasts (newsletters, receipts, notifications), asks an LLM which
of the account's rules the mail belongs to, and remembers the answer so the
analysis never has to run twice.
"""

__version__ = "0.1.0"
__author__ = "Trickl"

from sender_patterns.config import Settings, get_settings

__all__ = ["Settings", "get_settings", "__version__", "__author__"]
