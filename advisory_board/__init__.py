"""
Advisory Board response pipeline.

Classifies a question, builds persona prompts, calls the model with
retry/backoff, and falls back to deterministic static text when the
model is unavailable.
"""

__version__ = "0.1.0"
