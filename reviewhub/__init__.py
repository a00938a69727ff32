"""
ReviewHub - Multi-location review management platform.

Aggregates customer reviews from Google, Yelp and Facebook, drafts AI
responses, tracks competitors, runs SMS campaigns and reports analytics
across an organization's locations.
"""

__version__ = "1.0.0"
