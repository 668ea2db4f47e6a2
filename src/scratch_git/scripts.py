"""Block script documents and their textual rendering.

A document is the ``blocks`` mapping of one sprite (block id -> block) as
stored in a project's ``project.json``. Rendering flattens every top-level
script into indented lines of ``opcode inputs fields mutation`` so two
snapshots of a sprite can be diffed line by line.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from scratch_git.transport.base import ProtocolError


@dataclass(frozen=True)
class ScriptDocument:
    """Scripts of one sprite at one point in time."""

    sprite: str
    blocks: dict[str, Any]
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_payload(cls, raw: Any, sprite: str) -> ScriptDocument:
        """Build a document from a sprite target or a whole project.json."""

        if not isinstance(raw, dict):
            raise ProtocolError(f"Malformed script document for {sprite!r}")
        if isinstance(raw.get("blocks"), dict):
            return cls(sprite=sprite, blocks=raw["blocks"], raw=raw)
        targets = raw.get("targets")
        if isinstance(targets, list):
            for target in targets:
                if not isinstance(target, dict):
                    continue
                matches = target.get("name") == sprite or (
                    target.get("isStage") is True and sprite == "Stage"
                )
                if matches and isinstance(target.get("blocks"), dict):
                    return cls(sprite=sprite, blocks=target["blocks"], raw=raw)
            raise ProtocolError(f"Sprite {sprite!r} not found in project")
        raise ProtocolError(f"Malformed script document for {sprite!r}")

    @property
    def top_ids(self) -> list[str]:
        return [
            block_id
            for block_id, block in self.blocks.items()
            if isinstance(block, dict) and block.get("topLevel")
        ]

    def scripts(self) -> list[str]:
        """Render each top-level script, sorted case-insensitively."""

        rendered = [self._render_chain(block_id, depth=-1) for block_id in self.top_ids]
        return sorted(rendered, key=str.lower)

    def render(self) -> str:
        return "\n".join(self.scripts()).rstrip()

    def _render_chain(
        self,
        start_id: str,
        depth: int,
        *,
        else_clause: bool = False,
        seen: set[str] | None = None,
    ) -> str:
        lines: list[str] = []
        if else_clause:
            lines.append("\t" * depth + "else\n")
        # Shared across nested chains so a block is rendered at most once per script.
        seen = set() if seen is None else seen
        current: Any = start_id
        while isinstance(current, str):
            if current in seen:
                raise ProtocolError(f"Cycle in block chain at {current!r}")
            seen.add(current)
            block = self.blocks.get(current)
            if not isinstance(block, dict) or not isinstance(block.get("opcode"), str):
                raise ProtocolError(f"Block {current!r} has no opcode")

            line = "\t" * (depth + 1) + f"{block['opcode']} {self._describe(block)}".rstrip()
            inputs = block.get("inputs") or {}
            condition_id = _linked_id(inputs.get("CONDITION"))
            if condition_id is not None:
                line += self._render_chain(condition_id, depth=0, seen=seen)
            else:
                line += "\n"
            lines.append(line)

            for name, nested_else in (("SUBSTACK", False), ("SUBSTACK2", True)):
                substack_id = _linked_id(inputs.get(name))
                if substack_id is not None:
                    lines.append(
                        self._render_chain(
                            substack_id, depth=depth + 1, else_clause=nested_else, seen=seen
                        )
                    )
            current = block.get("next")
        return "".join(lines)

    def _describe(self, block: dict[str, Any]) -> str:
        parts = [_compact(block.get(name)) for name in ("inputs", "fields", "mutation")]
        info = " ".join(parts)
        # Block ids differ between saves; mask them so only structure is compared.
        for block_id in self.blocks:
            info = info.replace(f'"{block_id}"', '"id"')
        return info.strip()


def _linked_id(value: Any) -> str | None:
    # Inputs look like [shadow_type, block_id, ...]; block_id is null when empty.
    if isinstance(value, list) and len(value) > 1 and isinstance(value[1], str):
        return value[1]
    return None


def _compact(value: Any) -> str:
    text = json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return "" if text in ("{}", "null") else text
