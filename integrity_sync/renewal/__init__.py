"""Subscription lease renewal."""

from .subscription_renewer import RenewalReport, SubscriptionRenewer

__all__ = ["RenewalReport", "SubscriptionRenewer"]
