"""Typed records returned by the project facade and ad hoc operations."""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any

from scratch_git.transport.base import ProtocolError

# Number of leading date tokens kept for display, e.g. "Mon Jan 1 00:00:00".
# Only meaningful for English git date output.
SHORT_DATE_TOKENS = 4


class PushStatus(str, Enum):
    """Outcome of pushing to the configured remote."""

    SUCCESS = "success"
    UP_TO_DATE = "up to date"
    PULL_NEEDED = "pull needed"


class PullStatus(str, Enum):
    """Outcome of pulling from the configured remote."""

    SUCCESS = "success"
    NOTHING_NEW = "nothing new"
    UNRELATED_HISTORIES = "unrelated histories"


class RepoStatusCode(IntEnum):
    """Commit readiness reported by ``repo-status``.

    The server only documents the code as a number. These names are the
    codes this client assumes; other codes are passed through as plain ints.
    """

    CLEAN = 0
    CHANGES_TO_COMMIT = 1
    COMMITS_TO_PUSH = 2


class ChangeKind(str, Enum):
    """Which side of a save a costume change belongs to."""

    BEFORE = "before"
    AFTER = "after"


@dataclass(frozen=True)
class CommitAuthor:
    """Author identity recorded on a commit."""

    name: str
    email: str
    date: str


@dataclass(frozen=True)
class Commit:
    """One entry of a project's history.

    Attributes:
        commit: Commit hash.
        subject: First line of the commit message.
        body: Remainder of the commit message.
        author: Author identity and raw date string.
        short_date: Leading tokens of the raw date, for compact display.
    """

    commit: str
    subject: str
    body: str
    author: CommitAuthor
    short_date: list[str] = field(default_factory=list)

    @classmethod
    def from_payload(cls, raw: Any) -> Commit:
        if not isinstance(raw, dict) or not isinstance(raw.get("author"), dict):
            raise ProtocolError(f"Malformed commit record: {raw!r}")
        author_raw = raw["author"]
        author = CommitAuthor(
            name=_require_str(author_raw, "name"),
            email=_require_str(author_raw, "email"),
            date=_require_str(author_raw, "date"),
        )
        return cls(
            commit=_require_str(raw, "commit"),
            subject=_require_str(raw, "subject"),
            body=str(raw.get("body") or ""),
            author=author,
            short_date=short_date(author.date),
        )


def short_date(date: str) -> list[str]:
    """Return the first whitespace-delimited tokens of a git date string."""

    return date.split()[:SHORT_DATE_TOKENS]


@dataclass(frozen=True)
class SpriteChange:
    """A sprite (or the stage) changed since the last commit."""

    name: str
    is_stage: bool

    def format(self) -> str:
        return self.name + (" (stage)" if self.is_stage else "")

    @classmethod
    def from_payload(cls, raw: Any) -> SpriteChange:
        if (
            not isinstance(raw, (list, tuple))
            or len(raw) != 2
            or not isinstance(raw[0], str)
            or not isinstance(raw[1], bool)
        ):
            raise ProtocolError(f"Malformed sprite entry: {raw!r}")
        return cls(name=raw[0], is_stage=raw[1])


def collation_key(name: str) -> tuple[str, str, str]:
    """Sort key approximating locale-aware collation.

    Accents and case only break ties, and lowercase sorts before uppercase,
    so ``["b", "A", "a", "á"]`` orders as ``["a", "A", "á", "b"]``.
    """

    decomposed = unicodedata.normalize("NFKD", name)
    base = "".join(char for char in decomposed if not unicodedata.combining(char))
    return base.casefold(), decomposed.casefold(), name.swapcase()


@dataclass(frozen=True)
class CostumeChange:
    """A costume or sound asset that differs across a save."""

    name: str
    path: str
    ext: str
    on_stage: bool
    sprite: str
    kind: ChangeKind | None
    contents: bytes | None

    @classmethod
    def from_payload(cls, raw: Any) -> CostumeChange:
        if not isinstance(raw, dict):
            raise ProtocolError(f"Malformed costume change: {raw!r}")
        kind_raw = raw.get("kind")
        contents_raw = raw.get("contents")
        try:
            kind = ChangeKind(kind_raw) if kind_raw is not None else None
            contents = bytes(contents_raw) if contents_raw is not None else None
        except (ValueError, TypeError) as exc:
            raise ProtocolError(f"Malformed costume change: {raw!r}") from exc
        on_stage = raw.get("onStage", raw.get("on_stage", False))
        return cls(
            name=_require_str(raw, "name"),
            path=_require_str(raw, "path"),
            ext=_require_str(raw, "ext"),
            on_stage=bool(on_stage),
            sprite=_require_str(raw, "sprite"),
            kind=kind,
            contents=contents,
        )


AssetChanges = dict[str, dict[str, list[CostumeChange]]]


def parse_asset_changes(raw: Any) -> AssetChanges:
    """Parse the sprite -> asset -> changes mapping of ``get-changed-assets``."""

    if not isinstance(raw, dict):
        raise ProtocolError(f"Malformed asset changes: {raw!r}")
    changes: AssetChanges = {}
    for sprite, assets in raw.items():
        if not isinstance(assets, dict):
            raise ProtocolError(f"Malformed asset changes for sprite {sprite!r}")
        changes[sprite] = {}
        for asset, entries in assets.items():
            if not isinstance(entries, list):
                raise ProtocolError(f"Malformed asset changes for {sprite!r}/{asset!r}")
            changes[sprite][asset] = [CostumeChange.from_payload(entry) for entry in entries]
    return changes


@dataclass(frozen=True)
class GitDetails:
    """Remote repository and author identity configured for a project."""

    username: str
    email: str
    repository: str

    @classmethod
    def from_payload(cls, raw: Any) -> GitDetails:
        if not isinstance(raw, dict):
            raise ProtocolError(f"Malformed project details: {raw!r}")
        return cls(
            username=str(raw.get("username") or ""),
            email=str(raw.get("email") or ""),
            repository=str(raw.get("repository") or ""),
        )

    def to_payload(self) -> dict[str, str]:
        return {"username": self.username, "email": self.email, "repository": self.repository}


@dataclass(frozen=True)
class RepoStatus:
    """Whether the project can be committed and how far it is ahead of the remote."""

    status: RepoStatusCode | int
    commits_ahead: int

    @classmethod
    def from_payload(cls, raw: Any) -> RepoStatus:
        if not isinstance(raw, dict):
            raise ProtocolError(f"Malformed repo status: {raw!r}")
        status = raw.get("status")
        ahead = raw.get("commits_ahead")
        if not _is_int(status) or not _is_int(ahead) or ahead < 0:
            raise ProtocolError(f"Malformed repo status: {raw!r}")
        try:
            code: RepoStatusCode | int = RepoStatusCode(status)
        except ValueError:
            code = status
        return cls(status=code, commits_ahead=ahead)


@dataclass(frozen=True)
class CommitResult:
    """Outcome of a commit.

    The server answers with a message string when the commit was made and a
    numeric code when it was not.
    """

    success: bool
    message: str | None = None
    code: int | None = None

    @classmethod
    def from_payload(cls, raw: Any) -> CommitResult:
        message = raw.get("message") if isinstance(raw, dict) else None
        if isinstance(message, str):
            return cls(success=True, message=message)
        if _is_int(message):
            return cls(success=False, code=message)
        raise ProtocolError(f"Malformed commit response: {raw!r}")


@dataclass(frozen=True)
class DiffResult:
    """Line counts and rendered body of a script diff."""

    added: int
    removed: int
    diffed: str

    @classmethod
    def from_payload(cls, raw: Any) -> DiffResult:
        if not isinstance(raw, dict):
            raise ProtocolError(f"Malformed diff response: {raw!r}")
        added = raw.get("added")
        removed = raw.get("removed")
        diffed = raw.get("diffed")
        if not _is_int(added) or not _is_int(removed) or not isinstance(diffed, str):
            raise ProtocolError(f"Malformed diff response: {raw!r}")
        return cls(added=added, removed=removed, diffed=diffed)


@dataclass(frozen=True)
class OperationResult:
    """Success flag plus the raw server detail for fire-and-forget commands."""

    success: bool
    detail: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, raw: Any) -> OperationResult:
        """Interpret an acknowledgement.

        ``true``/``false`` map directly. A mapping succeeds unless it carries
        ``"status": "fail"``, ``"success": false`` or an ``error`` field.
        """

        if isinstance(raw, bool):
            return cls(success=raw)
        if not isinstance(raw, dict):
            raise ProtocolError(f"Malformed acknowledgement: {raw!r}")
        failed = (
            raw.get("status") == "fail"
            or raw.get("success") is False
            or bool(raw.get("error"))
        )
        return cls(success=not failed, detail=dict(raw))


def _require_str(raw: dict[str, Any], name: str) -> str:
    value = raw.get(name)
    if not isinstance(value, str):
        raise ProtocolError(f"Expected string field {name!r} in {raw!r}")
    return value


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)
