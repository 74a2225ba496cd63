"""Domain Events.

Lifecycle events emitted by the request queue, retry policy and orchestrators.
"""
