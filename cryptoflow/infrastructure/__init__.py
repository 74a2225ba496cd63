"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the application to the outside world (AI provider, file system,
console) by implementing the interfaces defined in the domain layer.
"""
