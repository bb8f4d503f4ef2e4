from dataclasses import dataclass

CHANGE_ACTIONS = ("added", "deleted")


@dataclass
class ChangeEvent:
    action: str
    path: str
    kind: str
    reported_at: int
