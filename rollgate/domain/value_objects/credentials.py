from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Credentials:
    """
    Value Object for SSH authentication material.
    Supplied by the caller (config, CI secrets); never generated or stored.
    """
    user: str = "deploy"
    key_filename: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)
    connect_timeout: float = 10.0
    allow_agent: bool = True
    look_for_keys: bool = True

    def __post_init__(self):
        if not self.user:
            raise ValueError("SSH user cannot be empty")
        if self.connect_timeout <= 0:
            raise ValueError(f"connect_timeout must be > 0, got {self.connect_timeout}")
