"""Counter store adapters.

The rate limiter depends on a two-primitive store interface (atomic increment
and millisecond expiry). Redis backs it in every multi-worker deployment; the
in-memory store exists for local development and tests.
"""
