import os
from dataclasses import dataclass, field
from typing import List, Tuple

from .flatten import JoinPolicy
from .styles import BROWN_COLOR, EXACT_COLOR, RED_VARIANTS, UNDERLINE

ENV_JOIN_POLICY = "REVMARK_JOIN_POLICY"

CLI_ARG_PAIRS: List[Tuple[str, str]] = [
    ("--no-token-boundary", "require_token_boundary"),
]

CLI_ARG_MAP = dict(CLI_ARG_PAIRS)
FIELD_TO_CLI = {field_name: flag for flag, field_name in CLI_ARG_PAIRS}


@dataclass
class AnnotationSettings:
    """Settings shared by annotate, mask and the CLI."""

    # How inter-run join spaces are synthesized in the flattened text
    join_policy: JoinPolicy = JoinPolicy.ALNUM
    # Reject hits embedded inside longer tokens ("art" in "startup")
    require_token_boundary: bool = True

    # Ground truth: bold + one of these colors
    red_variants: Tuple[str, ...] = field(default_factory=lambda: tuple(sorted(RED_VARIANTS)))
    exact_color: str = EXACT_COLOR
    added_color: str = BROWN_COLOR
    underline: str = UNDERLINE

    def __post_init__(self):
        self.join_policy = JoinPolicy.parse(self.join_policy)

    @classmethod
    def from_cli_args(cls, args: List[str], base: "AnnotationSettings" = None) -> "AnnotationSettings":
        """Apply --no-* flags on top of base (or defaults); unknown args are ignored."""
        settings = cls(**vars(base)) if base is not None else cls()
        for i, arg in enumerate(args):
            if arg in CLI_ARG_MAP:
                setattr(settings, CLI_ARG_MAP[arg], False)
            elif arg == "--join-policy" and i + 1 < len(args):
                settings.join_policy = JoinPolicy.parse(args[i + 1])
        return settings

    def to_cli_args(self) -> List[str]:
        args: List[str] = []
        if self.join_policy is not JoinPolicy.ALNUM:
            args.extend(["--join-policy", self.join_policy.value])
        for field_name, flag in FIELD_TO_CLI.items():
            if not getattr(self, field_name):
                args.append(flag)
        return args

    @classmethod
    def from_env(cls) -> "AnnotationSettings":
        settings = cls()
        policy = os.environ.get(ENV_JOIN_POLICY)
        if policy:
            settings.join_policy = JoinPolicy.parse(policy)
        return settings
