"""
Registry initialization for review module.
Registers the SM-2 scheduler implementation.
"""

from wordmaster.v1.core.registries import scheduler_registry
from wordmaster.v1.review.sm2 import SM2Scheduler


def init_review_registries():
    """Initialize review-related registries."""
    if SM2Scheduler.name not in scheduler_registry.list():
        scheduler_registry.register(SM2Scheduler.name, SM2Scheduler())
