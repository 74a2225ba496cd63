"""Domain Layer: entities, value objects, interfaces and events.

Has no dependencies on infrastructure or third-party SDKs.
"""
