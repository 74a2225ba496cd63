"""API Resilience Implementations.

Contains the serial execution queue that keeps a single call in flight
against the AI provider, and the retry policy with exponential backoff
for rate-limit errors.
Bounded Context: API Resilience
"""
