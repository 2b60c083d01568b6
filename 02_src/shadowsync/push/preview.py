"""Push preview models and logic diffing."""

import difflib
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Literal

from ..models import Conflict


class PushStage(str, Enum):
    """Where a push stands after preview."""

    RESOLVE_CONFLICTS = "resolve_conflicts"
    REVIEW = "review"


@dataclass
class ChangeLine:
    """One changed line between live and shadow logic."""

    type: Literal["addition", "modification", "deletion"]
    line: int  # 1-based; shadow side for additions/modifications, live side for deletions
    old_content: str | None = None
    new_content: str | None = None


@dataclass
class PushPreview:
    """Result of previewing a push to live."""

    logic_id: str
    stage: PushStage
    conflicts: list[Conflict] = field(default_factory=list)
    changes: list[ChangeLine] = field(default_factory=list)


@dataclass
class PushResult:
    """A committed push."""

    logic_id: str
    target: str
    committed_at: datetime
    message: str = ""
    warnings: list[str] = field(default_factory=list)


def diff_logic(live: str, shadow: str) -> list[ChangeLine]:
    """Line diff from the deployed (live) logic to the shadow logic."""
    old_lines = live.splitlines()
    new_lines = shadow.splitlines()
    matcher = difflib.SequenceMatcher(a=old_lines, b=new_lines, autojunk=False)

    changes: list[ChangeLine] = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            continue
        if tag == "delete":
            changes.extend(
                ChangeLine("deletion", i + 1, old_content=old_lines[i]) for i in range(i1, i2)
            )
        elif tag == "insert":
            changes.extend(
                ChangeLine("addition", j + 1, new_content=new_lines[j]) for j in range(j1, j2)
            )
        else:
            # replace: pair lines up, overflow becomes additions or deletions
            for k in range(max(i2 - i1, j2 - j1)):
                old = old_lines[i1 + k] if i1 + k < i2 else None
                new = new_lines[j1 + k] if j1 + k < j2 else None
                if old is not None and new is not None:
                    changes.append(ChangeLine("modification", j1 + k + 1, old, new))
                elif new is not None:
                    changes.append(ChangeLine("addition", j1 + k + 1, new_content=new))
                else:
                    changes.append(ChangeLine("deletion", i1 + k + 1, old_content=old))
    return changes
