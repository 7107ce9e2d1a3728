"""Command-line grammar consumed by the execution engine.

Three shapes are recognised:

    <program> [arg]*                      plain command
    <segment> (| <segment>)*              pipeline
    runparallel <cmd1>;<cmd2>;...;<cmdN>  parallel batch

Tokenisation is plain whitespace splitting. There is no quoting, escaping,
redirection or variable expansion.
"""

from __future__ import annotations

from dataclasses import dataclass

PIPE = "|"
BATCH_SEPARATOR = ";"


@dataclass(frozen=True)
class Command:
    """One program invocation: a program name and its arguments."""

    program: str
    args: tuple[str, ...] = ()

    @property
    def argv(self) -> list[str]:
        return [self.program, *self.args]

    @property
    def text(self) -> str:
        return " ".join(self.argv)

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True)
class Pipeline:
    """An ordered chain of stages; stage i reads what stage i-1 writes."""

    stages: tuple[Command, ...]

    def __len__(self) -> int:
        return len(self.stages)

    @property
    def last(self) -> Command:
        return self.stages[-1]

    @property
    def text(self) -> str:
        return f" {PIPE} ".join(stage.text for stage in self.stages)


def parse_command(text: str) -> Command | None:
    """Parse one plain command; returns None when ``text`` has no tokens."""
    tokens = text.strip().split()
    if not tokens:
        return None
    return Command(program=tokens[0], args=tuple(tokens[1:]))


def parse_pipeline(line: str) -> Pipeline:
    """Split ``line`` on ``|`` and parse every segment.

    Empty segments (``"a | | b"``, a leading ``"| b"``) are dropped rather than
    treated as errors, so they never take up a pipeline slot.
    """
    stages = []
    for segment in line.split(PIPE):
        command = parse_command(segment)
        if command is not None:
            stages.append(command)
    return Pipeline(stages=tuple(stages))


def parse_batch(text: str) -> list[str]:
    """Split a ``runparallel`` argument into trimmed, non-empty commands."""
    return [part.strip() for part in text.split(BATCH_SEPARATOR) if part.strip()]


__all__ = [
    "PIPE",
    "BATCH_SEPARATOR",
    "Command",
    "Pipeline",
    "parse_command",
    "parse_pipeline",
    "parse_batch",
]
