from .event import CanonicalRecord

__all__ = ["CanonicalRecord"]
