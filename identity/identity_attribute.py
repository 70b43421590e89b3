from typing import Any


class IdentityAttribute:
    """A named attribute value used when creating or updating identity objects."""

    def __init__(self, name: str, value: Any):
        if not name or not name.strip():
            raise ValueError("Attribute name must be a non-empty string")
        self.name = name
        self.value = value

    def __eq__(self, other) -> bool:
        if not isinstance(other, IdentityAttribute):
            return NotImplemented
        return self.name.lower() == other.name.lower() and self.value == other.value

    def __hash__(self) -> int:
        return hash(self.name.lower())

    def __repr__(self) -> str:
        return f"IdentityAttribute(name='{self.name}', value={self.value!r})"
