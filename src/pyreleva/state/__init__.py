"""State/tracking layer.

This package is the single source of truth for how local mutations of
identity, cart and wishlist are compared, persisted and marked as changed
until a sync succeeds.
"""
