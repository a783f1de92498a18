"""Core primitives: errors, checked math, events, transactions and the asset token."""
