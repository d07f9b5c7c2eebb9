from dataclasses import dataclass


@dataclass
class Session:
    """authentication state of one registry client."""
    token: str = ""

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    def clear(self):
        self.token = ""
