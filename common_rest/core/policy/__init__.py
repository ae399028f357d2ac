from .models import DEFAULT_PRIMARY_KEY, FieldPolicy, ResourcePolicy

__all__ = [
    "DEFAULT_PRIMARY_KEY",
    "FieldPolicy",
    "ResourcePolicy",
]
