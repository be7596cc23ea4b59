"""
Nearby place discovery engine.

Responsibilities:
- Aggregate attraction and restaurant candidates around a point.
- Drop duplicates, blocked categories and thinly reviewed places.
- Cache filtered candidates per (location, radius, credential) with a TTL.
- Score candidates on quality, diversity and locality and return the top N.
"""
