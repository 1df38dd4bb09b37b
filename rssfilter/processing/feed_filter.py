"""
Feed Filter Engine
==================

Parses RSS 2.0, RSS 1.0 (RDF) and Atom documents with lxml, removes the
items whose title, GUID or link match a filter expression and writes the
document back out. Only whole item elements are removed; every other node
of the document is kept in place.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Pattern, Sequence, Tuple

from lxml import etree

from ..utils.exceptions import FeedParseError, FeedSerializationError
from ..utils.logging import get_logger_for_component
from ..utils.validators import (
    GUID_FILTER_PARAM,
    LINK_FILTER_PARAM,
    TITLE_FILTER_PARAM,
    RegexValidator,
)

RDF_NS = "http://www.w3.org/1999/02/22-rdf-syntax-ns#"
ATOM_NS = "http://www.w3.org/2005/Atom"

_RDF_ABOUT = f"{{{RDF_NS}}}about"
_RDF_RESOURCE = f"{{{RDF_NS}}}resource"


class FeedKind(str, Enum):
    """Recognised feed dialects."""
    RSS = "rss"
    RDF = "rdf"
    ATOM = "atom"


@dataclass(frozen=True)
class FilterSpec:
    """Compiled filter expressions, one tuple per item field.

    An empty tuple places no constraint on that field; a spec with all three
    empty removes nothing.
    """

    title_regexes: Tuple[Pattern, ...] = ()
    guid_regexes: Tuple[Pattern, ...] = ()
    link_regexes: Tuple[Pattern, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.title_regexes or self.guid_regexes or self.link_regexes)

    @classmethod
    def from_strings(
        cls,
        title: Iterable[str] = (),
        guid: Iterable[str] = (),
        link: Iterable[str] = (),
    ) -> "FilterSpec":
        """Compile raw expressions.

        Raises:
            ValidationError: If any expression is not a valid regex
        """
        return cls(
            title_regexes=RegexValidator.compile_all(title, TITLE_FILTER_PARAM),
            guid_regexes=RegexValidator.compile_all(guid, GUID_FILTER_PARAM),
            link_regexes=RegexValidator.compile_all(link, LINK_FILTER_PARAM),
        )


@dataclass
class Item:
    """One feed item (RSS ``item`` or Atom ``entry``) and its match fields."""

    element: etree._Element
    title: Optional[str] = None
    guid: Optional[str] = None
    link: Optional[str] = None


@dataclass
class Channel:
    """A parsed feed document."""

    kind: FeedKind
    tree: etree._ElementTree
    container: etree._Element
    title: Optional[str] = None
    link: Optional[str] = None
    description: Optional[str] = None
    items: List[Item] = field(default_factory=list)


@dataclass(frozen=True)
class FilterOutcome:
    """Filtered document bytes and item counts."""

    body: bytes
    items_before: int
    items_after: int

    @property
    def items_removed(self) -> int:
        return self.items_before - self.items_after


def _is_element(node) -> bool:
    # Comments and processing instructions have a non-string tag
    return isinstance(node.tag, str)


def _local_name(element: etree._Element) -> str:
    return etree.QName(element).localname


def _namespace(element: etree._Element) -> Optional[str]:
    return etree.QName(element).namespace


def _children(parent: etree._Element, local_name: str, namespace: Optional[str]) -> List[etree._Element]:
    return [
        child for child in parent
        if _is_element(child)
        and _local_name(child) == local_name
        and _namespace(child) == namespace
    ]


def _child_text(parent: etree._Element, local_name: str, namespace: Optional[str]) -> Optional[str]:
    """Stripped text of the first matching child; "" if empty, None if absent."""
    matches = _children(parent, local_name, namespace)
    if not matches:
        return None
    return "".join(matches[0].itertext()).strip()


def _atom_link(entry: etree._Element) -> Optional[str]:
    links = _children(entry, "link", ATOM_NS)
    if not links:
        return None
    for link in links:
        if link.get("rel", "alternate") == "alternate":
            return link.get("href")
    return links[0].get("href")


def _matches(regexes: Sequence[Pattern], value: Optional[str]) -> bool:
    if value is None:
        return False
    return any(regex.search(value) for regex in regexes)


class FeedFilterEngine:
    """Parse, filter and re-serialize feed documents."""

    def __init__(self):
        self.logger = get_logger_for_component("feed_filter")

    @staticmethod
    def _parser() -> etree.XMLParser:
        # Untrusted input: no entity expansion, no network lookups
        return etree.XMLParser(
            remove_blank_text=True,
            resolve_entities=False,
            no_network=True,
        )

    def parse(self, content: bytes, feed_url: Optional[str] = None) -> Channel:
        """Parse feed bytes into a ``Channel``.

        Raises:
            FeedParseError: If the bytes are not well-formed XML or the root
                element is not a recognised feed
        """
        if not content or not content.strip():
            raise FeedParseError("Feed document is empty", feed_url=feed_url)

        try:
            root = etree.fromstring(content, self._parser())
        except (etree.XMLSyntaxError, ValueError) as e:
            raise FeedParseError(f"Failed to parse feed XML: {e}", feed_url=feed_url) from e

        tree = root.getroottree()
        root_name = _local_name(root)
        root_ns = _namespace(root)

        if root_name == "rss" and root_ns is None:
            return self._parse_rss(tree, root, feed_url)
        if root_name == "RDF" and root_ns == RDF_NS:
            return self._parse_rdf(tree, root, feed_url)
        if root_name == "feed" and root_ns == ATOM_NS:
            return self._parse_atom(tree, root)

        raise FeedParseError(
            f"Unrecognised feed root element <{root_name}>", feed_url=feed_url
        )

    def _parse_rss(self, tree, root, feed_url) -> Channel:
        channels = _children(root, "channel", None)
        if not channels:
            raise FeedParseError("RSS document has no <channel> element", feed_url=feed_url)
        channel = channels[0]

        items = [
            Item(
                element=element,
                title=_child_text(element, "title", None),
                guid=_child_text(element, "guid", None),
                link=_child_text(element, "link", None),
            )
            for element in _children(channel, "item", None)
        ]

        return Channel(
            kind=FeedKind.RSS,
            tree=tree,
            container=channel,
            title=_child_text(channel, "title", None),
            link=_child_text(channel, "link", None),
            description=_child_text(channel, "description", None),
            items=items,
        )

    def _parse_rdf(self, tree, root, feed_url) -> Channel:
        # RSS 1.0 and 0.90 differ only in the namespace of their elements
        channel = next(
            (child for child in root if _is_element(child) and _local_name(child) == "channel"),
            None,
        )
        if channel is None:
            raise FeedParseError("RDF document has no <channel> element", feed_url=feed_url)
        ns = _namespace(channel)

        items = []
        for element in _children(root, "item", ns):
            about = element.get(_RDF_ABOUT)
            items.append(Item(
                element=element,
                title=_child_text(element, "title", ns),
                guid=about.strip() if about is not None else None,
                link=_child_text(element, "link", ns),
            ))

        return Channel(
            kind=FeedKind.RDF,
            tree=tree,
            container=root,
            title=_child_text(channel, "title", ns),
            link=_child_text(channel, "link", ns),
            description=_child_text(channel, "description", ns),
            items=items,
        )

    def _parse_atom(self, tree, root) -> Channel:
        items = [
            Item(
                element=element,
                title=_child_text(element, "title", ATOM_NS),
                guid=_child_text(element, "id", ATOM_NS),
                link=_atom_link(element),
            )
            for element in _children(root, "entry", ATOM_NS)
        ]

        return Channel(
            kind=FeedKind.ATOM,
            tree=tree,
            container=root,
            title=_child_text(root, "title", ATOM_NS),
            link=_atom_link(root),
            description=_child_text(root, "subtitle", ATOM_NS),
            items=items,
        )

    def should_remove(self, item: Item, spec: FilterSpec) -> bool:
        """True if any field is present and matches any of its expressions."""
        return (
            _matches(spec.title_regexes, item.title)
            or _matches(spec.guid_regexes, item.guid)
            or _matches(spec.link_regexes, item.link)
        )

    def filter(self, channel: Channel, spec: FilterSpec) -> List[Item]:
        """Remove matching items from the channel in place.

        Returns:
            The removed items, in document order
        """
        self.logger.debug("Filtering items from feed")
        items_before = len(channel.items)

        kept, removed = [], []
        for item in channel.items:
            if self.should_remove(item, spec):
                self.logger.debug("Filtering out item", extra={"item": item.link})
                removed.append(item)
            else:
                kept.append(item)

        for item in removed:
            parent = item.element.getparent()
            if parent is not None:
                parent.remove(item.element)

        if channel.kind == FeedKind.RDF and removed:
            self._drop_rdf_sequence_entries(channel, removed)

        channel.items = kept

        if removed:
            self.logger.info(
                "Filtered items from feed",
                extra={
                    "channel_url": channel.link,
                    "items_before": items_before,
                    "items_after": len(kept),
                    "items_removed": len(removed),
                },
            )
        else:
            self.logger.info("No items filtered from feed", extra={"channel_url": channel.link})

        return removed

    @staticmethod
    def _drop_rdf_sequence_entries(channel: Channel, removed: List[Item]) -> None:
        """Remove ``rdf:li`` references to removed items from the channel index."""
        removed_uris = {item.guid for item in removed if item.guid is not None}
        if not removed_uris:
            return
        for li in channel.container.iter(f"{{{RDF_NS}}}li"):
            if li.get(_RDF_RESOURCE, "").strip() in removed_uris:
                li.getparent().remove(li)

    def serialize(self, channel: Channel, feed_url: Optional[str] = None) -> bytes:
        """Write the document back out, pretty printed, in its own encoding.

        Raises:
            FeedSerializationError: If lxml cannot encode the document
        """
        encoding = channel.tree.docinfo.encoding or "UTF-8"
        try:
            return etree.tostring(
                channel.tree,
                pretty_print=True,
                xml_declaration=True,
                encoding=encoding,
            )
        except (etree.SerialisationError, LookupError, ValueError) as e:
            raise FeedSerializationError(
                f"Failed to serialize filtered feed: {e}", feed_url=feed_url
            ) from e

    def filter_feed(self, content: bytes, spec: FilterSpec, feed_url: Optional[str] = None) -> FilterOutcome:
        """Parse, filter and serialize in one call."""
        channel = self.parse(content, feed_url)
        items_before = len(channel.items)
        self.filter(channel, spec)
        body = self.serialize(channel, feed_url)
        return FilterOutcome(body=body, items_before=items_before, items_after=len(channel.items))
