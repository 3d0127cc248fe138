"""Azure Cost Pilot.

Daily cost spike explainer and idle resource finder for Azure
subscriptions: ingests per-resource billing rows, scores day-over-day
anomalies, and classifies waste from inventory signals.
"""

__version__ = "0.1.0"
__author__ = "Cloud Cost Team"
