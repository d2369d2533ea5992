# reviewiq/__init__.py

"""
ReviewIQ backend

Review enrichment and escalation pipeline plus the analytics engine that
turns enriched reviews into branch dashboards.

Key Components:
- core: configuration, database, exceptions, caching and logging plumbing
- modules.reviews: intake pipeline, classifier gateway, escalation policy,
  fact store, side effects, external sync and the real-time channel
- modules.analytics: branch summary, trend and SLA metrics
"""

__version__ = "1.0.0"
