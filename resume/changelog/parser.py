"""Conventional Commits parser.

Turns a CommitRecord into a ChangelogEntry. ``parse`` is total: any message,
however malformed, yields an entry (falling back to ``CommitType.other``).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from resume.changelog.models import ChangelogEntry, CommitType
from resume.vcs.models import CommitRecord, Trailers

logger = logging.getLogger(__name__)

DEFAULT_TEAM_TRAILER = "team"
BREAKING_TOKENS = frozenset({"breaking change", "breaking-change"})

# `token: value` or `token #value`
_TRAILER_RE = re.compile(
    r"^(?P<token>BREAKING[ -]CHANGE|[A-Za-z0-9][A-Za-z0-9-]*)"
    r"(?::[ \t]*|[ \t]+#)(?P<value>\S.*)$",
    re.IGNORECASE,
)

# type[(scope)][!]: description
_SUBJECT_RE = re.compile(
    r"^(?P<type>[A-Za-z]+)(?:\((?P<scope>[^()\n]*)\))?(?P<bang>!)?:[ \t]*(?P<desc>\S.*)$"
)

_REVERT_RE = re.compile(r'^Revert(?=[\s"\']|$)')


@dataclass(frozen=True)
class SplitMessage:
    """A raw message cut into subject, body and trailer block."""

    subject: str
    body: str | None
    trailers: Trailers


def _is_trailer(line: str) -> bool:
    return _TRAILER_RE.match(line) is not None


def _is_continuation(line: str) -> bool:
    return line[:1] in (" ", "\t") and bool(line.strip())


def _parse_trailer_block(lines: list[str]) -> Trailers:
    pairs: list[tuple[str, str]] = []
    for line in lines:
        if _is_continuation(line) and pairs:
            token, value = pairs[-1]
            pairs[-1] = (token, f"{value} {line.strip()}")
            continue
        m = _TRAILER_RE.match(line)
        if m:
            pairs.append((m.group("token"), m.group("value").strip()))
    return Trailers.from_pairs(pairs)


def _trailer_block_start(lines: list[str]) -> int:
    """Index of the first line of the trailing trailer run (len(lines) if none)."""
    start = len(lines)
    i = len(lines) - 1
    while i >= 0:
        line = lines[i]
        if _is_trailer(line):
            start = i
        elif not _is_continuation(line):
            break
        i -= 1
    return start


def _looks_like_subject(line: str) -> bool:
    if _REVERT_RE.match(line):
        return True
    m = _SUBJECT_RE.match(line)
    return m is not None and CommitType.from_token(m.group("type")) is not None


def split_message(message: str) -> SplitMessage:
    """Split *message* into subject, body and trailers.

    The trailer block is the maximal trailing run of trailer lines (folded
    continuation lines included). A single-line message is always a subject.
    When the run swallows the first line of a longer message, that line is
    still kept as the subject if it reads as a Conventional Commits or revert
    subject; otherwise the message has no subject at all.
    """
    lines = message.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    while lines and not lines[-1].strip():
        lines.pop()
    while lines and not lines[0].strip():
        lines.pop(0)
    if not lines:
        return SplitMessage(subject="", body=None, trailers=Trailers())

    start = _trailer_block_start(lines)
    if start == 0:
        # A lone line is a subject even when it reads like `JIRA-1: ...`
        if len(lines) == 1 or _looks_like_subject(lines[0].strip()):
            start = _trailer_block_start(lines[1:]) + 1
        else:
            return SplitMessage(
                subject="", body=None, trailers=_parse_trailer_block(lines)
            )

    subject = lines[0].strip()
    body = "\n".join(lines[1:start]).strip() or None
    return SplitMessage(
        subject=subject,
        body=body,
        trailers=_parse_trailer_block(lines[start:]),
    )


class CommitParser:
    """Classifies commits. Stateless apart from the team trailer token."""

    def __init__(self, team_trailer: str = DEFAULT_TEAM_TRAILER) -> None:
        self.team_trailer = team_trailer

    def parse(self, record: CommitRecord) -> ChangelogEntry:
        split = split_message(record.message)
        trailers = split.trailers.merged(record.trailers)

        ctype = CommitType.other
        scope: str | None = None
        summary = split.subject
        breaking = False

        if _REVERT_RE.match(split.subject):
            ctype = CommitType.revert
        else:
            m = _SUBJECT_RE.match(split.subject)
            matched = CommitType.from_token(m.group("type")) if m else None
            if m and matched is not None:
                ctype = matched
                scope = (m.group("scope") or "").strip() or None
                breaking = m.group("bang") is not None
                summary = m.group("desc").strip()

        breaking_notes = [
            value for token, value in trailers.items() if token.lower() in BREAKING_TOKENS
        ]
        if breaking_notes:
            breaking = True

        body = split.body
        if body is None and breaking_notes:
            body = "\n\n".join(breaking_notes)

        team = trailers.get_last(self.team_trailer)
        if team is not None:
            team = team.strip() or None

        if ctype is CommitType.other:
            logger.debug("commit %s is not conventional: %r", record.hash[:7], summary)

        return ChangelogEntry(
            commit_hash=record.hash,
            type=ctype,
            scope=scope,
            breaking=breaking,
            summary=summary,
            body=body,
            team=team,
            author=record.author,
            timestamp=record.timestamp,
        )


def parse_commit(
    record: CommitRecord, team_trailer: str = DEFAULT_TEAM_TRAILER
) -> ChangelogEntry:
    """Convenience wrapper around CommitParser.parse()."""
    return CommitParser(team_trailer).parse(record)
