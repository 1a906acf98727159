from dataclasses import dataclass
import re

_REF_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._/@+-]{0,254}$")


@dataclass(frozen=True)
class DeploymentRef:
    """
    Value Object for the version being shipped: a branch, tag or commit.
    Rejects anything git would refuse as a ref name, which also keeps
    option-like values (``--upload-pack=...``) out of remote commands.
    """
    value: str

    def __post_init__(self):
        if not self._is_valid(self.value):
            raise ValueError(f"Invalid deployment reference: {self.value!r}")

    @staticmethod
    def _is_valid(value: str) -> bool:
        if not value or not _REF_RE.match(value):
            return False
        if ".." in value or "//" in value or "@{" in value:
            return False
        return not (value.endswith("/") or value.endswith(".lock") or value.endswith("."))

    def __str__(self):
        return self.value
