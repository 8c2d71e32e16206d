"""Per-file overwrite decisions for template reconciliation."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable


class OverwritePolicy(str, Enum):
    NO = "no"
    PROMPT = "prompt"
    YES = "yes"

    @classmethod
    def parse(cls, value: "OverwritePolicy | str | bool | None") -> "OverwritePolicy":
        if isinstance(value, OverwritePolicy):
            return value
        if value is None or value is False:
            return cls.NO
        if value is True:
            return cls.YES
        token = str(value).strip().lower()
        aliases = {"no": cls.NO, "false": cls.NO, "prompt": cls.PROMPT, "yes": cls.YES, "true": cls.YES}
        if token not in aliases:
            raise ValueError(f"unknown overwrite policy: {value!r}")
        return aliases[token]


DECISION_WRITE = "write"
DECISION_SKIP = "skip"

DETAIL_TARGET_ABSENT = "target_absent"
DETAIL_SHELL_OWNED = "shell_owned_unmodified"
DETAIL_POLICY_YES = "policy_overwrite"
DETAIL_POLICY_NO = "policy_keep_user_file"
DETAIL_PROMPT_ACCEPTED = "prompt_accepted"
DETAIL_PROMPT_DECLINED = "prompt_declined"
DETAIL_ONCE_PRESENT = "once_file_present"

Prompter = Callable[[str], bool]


@dataclass(frozen=True)
class OverwriteDecision:
    action: str
    detail: str

    @property
    def write(self) -> bool:
        return self.action == DECISION_WRITE


def decide_overwrite(
    *,
    target: str,
    target_exists: bool,
    shell_owned_unmodified: bool,
    policy: OverwritePolicy,
    once: bool = False,
    prompter: Prompter | None = None,
) -> OverwriteDecision:
    """Decide whether one template file replaces the project's copy.

    Absent targets are always written. ``once`` targets that exist are never
    touched. Files whose project copy still matches the previously installed
    template are refreshed regardless of policy; everything else follows the
    policy, with ``prompt`` falling back to keeping the file when no
    prompter is available.
    """

    if not target_exists:
        return OverwriteDecision(DECISION_WRITE, DETAIL_TARGET_ABSENT)
    if once:
        return OverwriteDecision(DECISION_SKIP, DETAIL_ONCE_PRESENT)
    if shell_owned_unmodified:
        return OverwriteDecision(DECISION_WRITE, DETAIL_SHELL_OWNED)
    if policy is OverwritePolicy.YES:
        return OverwriteDecision(DECISION_WRITE, DETAIL_POLICY_YES)
    if policy is OverwritePolicy.PROMPT and prompter is not None:
        if prompter(target):
            return OverwriteDecision(DECISION_WRITE, DETAIL_PROMPT_ACCEPTED)
        return OverwriteDecision(DECISION_SKIP, DETAIL_PROMPT_DECLINED)
    return OverwriteDecision(DECISION_SKIP, DETAIL_POLICY_NO)
