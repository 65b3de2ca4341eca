"""ACME — Automated Content Moderation Engine.

Scores user-generated text against heuristic detectors, turns the scores
into allow / flag / block decisions, and keeps an auditable review queue
for the items a human has to look at.
"""

__version__ = "0.1.0"
