"""
Single-table persistence helpers.

Every mutating helper commits on its own: callers compose them into
multi-step operations that are deliberately not wrapped in one transaction.
"""
