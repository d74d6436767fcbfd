import enum


class Role(str, enum.Enum):
    ADMIN = "admin"
    CLIENT = "client"


def parse_role(value) -> Role:
    """Map a raw role string to Role. Raises ValueError for anything else."""
    if isinstance(value, Role):
        return value
    if not isinstance(value, str):
        raise ValueError("Role must be a string")
    return Role(value.strip().lower())
