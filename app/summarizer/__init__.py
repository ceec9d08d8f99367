"""
Literature Summarizer.

Extracts bibliographic metadata (title, author, year, state, key findings)
from PDF documents using an OpenAI model, one table row per document.
"""

__version__ = "1.0.0"
