"""Automated content moderation.

- Detectors: heuristic scorers for toxicity, spam, profanity, threats and PII
- Pipeline: runs the enabled detectors and aggregates severity and action
- Policy engine: the publish-path decision, queueing items for review
- Queue, decisions, bulk runner and stats built on pluggable stores
"""
