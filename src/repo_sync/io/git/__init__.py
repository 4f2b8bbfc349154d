from .ref_reader import classify_ref, read_refs

__all__ = ["classify_ref", "read_refs"]
