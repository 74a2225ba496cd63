"""Domain Interfaces (Abstract Base Classes).

Defines the contracts that infrastructure adapters implement.
"""
