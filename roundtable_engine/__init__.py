"""
Roundtable Engine - Multi-Character Conversation Orchestration

Routes a user's message to a set of simulated characters, lets each one
decide whether to join in, and generates replies backed by a persistent
per-character memory bank and a chain of interchangeable LLM providers.
"""

__version__ = "0.1.0"
