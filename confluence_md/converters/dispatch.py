"""Priority-ordered handler registry used to render storage-format tags."""

import logging
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Callable, Dict, List, Optional, Set, TextIO

from bs4 import Tag

logger = logging.getLogger('confluence_md.converters.dispatch')


class RenderStatus(Enum):
    """Outcome reported by a tag handler."""
    SUCCESS = 'success'
    TRY_NEXT = 'try_next'


class TagKind(Enum):
    """Structural kind of a registered tag."""
    INLINE = 'inline'
    BLOCK = 'block'


class Priority(IntEnum):
    """Handler priorities; lower values run first."""
    EARLY = 100
    STANDARD = 500
    LATE = 1000


Handler = Callable[[Tag, TextIO, Set[str]], RenderStatus]


@dataclass
class Registration:
    tag: str
    kind: TagKind
    handler: Handler
    priority: int
    order: int


class HandlerRegistry:
    """
    Maps tag names to rendering handlers.

    Handlers for a tag run in ascending priority order, ties broken by
    registration order. A handler writes its output to the writer it is given
    and returns SUCCESS to stop, or TRY_NEXT to let the next handler (and
    finally the generic conversion) contribute as well.
    """

    def __init__(self):
        self._registrations: Dict[str, List[Registration]] = {}
        self._kinds: Dict[str, TagKind] = {}
        self._count = 0

    def register(self, tag: str, kind: TagKind, handler: Handler, priority: int = Priority.STANDARD) -> None:
        """Register ``handler`` for ``tag``."""
        registration = Registration(tag, kind, handler, int(priority), self._count)
        self._count += 1
        entries = self._registrations.setdefault(tag, [])
        entries.append(registration)
        entries.sort(key=lambda r: (r.priority, r.order))
        self._kinds[tag] = kind
        logger.debug(f"Registered {kind.value} handler for <{tag}> at priority {int(priority)}")

    def has_handlers(self, tag: Optional[str]) -> bool:
        return bool(tag) and tag in self._registrations

    def handlers_for(self, tag: str) -> List[Handler]:
        """Handlers for ``tag`` in the order they will run."""
        return [r.handler for r in self._registrations.get(tag, [])]

    def kind_of(self, tag: Optional[str]) -> Optional[TagKind]:
        return self._kinds.get(tag) if tag else None

    def dispatch(self, node: Tag, writer: TextIO, parent_tags: Set[str]) -> RenderStatus:
        """
        Run the handlers registered for ``node``.

        Returns:
            SUCCESS if a handler claimed the node, TRY_NEXT if every handler
            deferred (or none is registered)
        """
        for handler in self.handlers_for(node.name):
            if handler(node, writer, parent_tags) is RenderStatus.SUCCESS:
                return RenderStatus.SUCCESS
        return RenderStatus.TRY_NEXT


__all__ = ['HandlerRegistry', 'Priority', 'RenderStatus', 'TagKind']
