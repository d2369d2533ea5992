# reviewiq/modules/analytics/__init__.py

"""
Branch analytics: summary metrics, daily trends, SLA compliance and staff
profiles computed from stored reviews behind a short-lived cache.
"""
