# booklingo/processors/markup_text.py
"""
Markup path: translate the text nodes of one XHTML document.

Steps:
1. Replace every "pagebreak" tag with a unique placeholder token
   (SPECIAL_TAG_0, SPECIAL_TAG_1, ...) and record the original tag text.
2. Parse the protected markup and capture every text node, in document
   order, as a slot with a stable integer handle. Slots are captured before
   any text is rewritten, so writing one node never moves another.
3. Run the node texts through BatchScheduler.
4. Write each result back by handle.
5. Splice each changed text, escaped, into the source string at the
   node's offsets. Everything else (prolog, tags, attributes, entity
   references, untouched text) is copied byte for byte.
6. Put the original tag text back in place of each token. Every recorded
   token must come back exactly once; anything else is an IntegrityError.
"""

import html
import html.entities
import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import NamedTuple

from lxml import etree

from booklingo.models.types import Snippet
from booklingo.services.batch_scheduler import BatchScheduler
from booklingo.services.exceptions import ExtractionError, IntegrityError, TranslationError
from booklingo.services.translators import TranslationPort

# Module logger
logger = logging.getLogger(__name__)

PLACEHOLDER_PREFIX = "SPECIAL_TAG_"

# Greedy digits: SPECIAL_TAG_1 never matches inside SPECIAL_TAG_10
_RE_PLACEHOLDER = re.compile(PLACEHOLDER_PREFIX + r"(\d+)")

# A start tag mentioning "pagebreak", either self-closed or closed after plain text
_RE_PAGEBREAK_TAG = re.compile(
    r"<(?P<tag>[A-Za-z][\w:.-]*)(?=[^<>]*pagebreak)[^<>]*?"
    r"(?:/>|>[^<]*</(?P=tag)\s*>)"
)

# First tag that is not a declaration, comment or processing instruction
_RE_ROOT_START = re.compile(r"<(?![?!])")

_RE_NAMED_ENTITY = re.compile(r"&([A-Za-z][A-Za-z0-9]*);")
_XML_ENTITIES = frozenset({"amp", "lt", "gt", "quot", "apos"})

# Elements whose text is not prose
SKIPPED_ELEMENTS = frozenset({"script", "style"})

# Markup between character-data runs; attribute values may contain '>'
_RE_MARKUP_TOKEN = re.compile(
    r"(?P<cdata><!\[CDATA\[.*?\]\]>)"
    r"|<!--.*?-->"
    r"|<\?.*?\?>"
    r"|<(?P<close>/)?(?P<name>[^\s/>]+)(?:[^>\"']|\"[^\"]*\"|'[^']*')*>",
    re.DOTALL,
)


def placeholder_token(number: int) -> str:
    return f"{PLACEHOLDER_PREFIX}{number}"


@dataclass
class PlaceholderMapping:
    """
    Placeholder token -> original tag text, in the order tokens were issued.
    """
    tokens: dict[str, str] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.tokens)

    def add(self, tag_text: str) -> str:
        token = placeholder_token(len(self.tokens))
        self.tokens[token] = tag_text
        return token

    def verify(self, text: str) -> None:
        """
        Check that every recorded token occurs exactly once in text and that
        no other token occurs.

        Raises:
            IntegrityError: A token was dropped, invented or duplicated
        """
        counts = Counter(match.group(0) for match in _RE_PLACEHOLDER.finditer(text))
        missing = self.tokens.keys() - counts.keys()
        unexpected = counts.keys() - self.tokens.keys()
        duplicated = {token for token, count in counts.items() if count > 1}
        if missing or unexpected or duplicated:
            raise IntegrityError(
                "Placeholder tokens did not survive translation",
                missing=missing,
                unexpected=unexpected,
                duplicated=duplicated,
            )

    def restore(self, text: str) -> str:
        """Replace every token with its original tag text (after verify)."""
        self.verify(text)
        if not self.tokens:
            return text
        return _RE_PLACEHOLDER.sub(lambda match: self.tokens[match.group(0)], text)


def protect_special_tags(markup: str) -> tuple[str, PlaceholderMapping]:
    """
    Replace pagebreak tags with placeholder tokens.

    Returns:
        (protected markup, mapping)

    Raises:
        IntegrityError: The markup already contains placeholder-like text,
            which would make restoration ambiguous
    """
    existing = {match.group(0) for match in _RE_PLACEHOLDER.finditer(markup)}
    if existing:
        raise IntegrityError("Source markup already contains placeholder tokens",
                             unexpected=existing)

    mapping = PlaceholderMapping()
    protected = _RE_PAGEBREAK_TAG.sub(lambda match: mapping.add(match.group(0)), markup)
    if mapping:
        logger.debug("Protected %d pagebreak tags", len(mapping))
    return protected, mapping


def _numeric_entities(markup: str) -> str:
    """Rewrite HTML named entities (&nbsp; ...) as character references."""
    def replace(match: re.Match) -> str:
        name = match.group(1)
        if name in _XML_ENTITIES:
            return match.group(0)
        codepoint = html.entities.name2codepoint.get(name)
        if codepoint is None:
            return match.group(0)
        return f"&#{codepoint};"

    return _RE_NAMED_ENTITY.sub(replace, markup)


def _local_name(element) -> str:
    return etree.QName(element).localname


def _text_spans(markup: str, start: int) -> list[tuple[int, int]]:
    """
    Source offsets of the character-data runs inside the root element.

    A run is the text between two tags, comments or processing
    instructions; CDATA sections belong to the run around them. Runs inside
    script/style are left out. The result lines up one-to-one with the text
    slots MarkupTextDocument collects from the parsed tree.
    """
    spans: list[tuple[int, int]] = []
    open_tags: list[str] = []
    skipped_depth = 0
    run_start = start

    for match in _RE_MARKUP_TOKEN.finditer(markup, start):
        if match.group("cdata"):
            continue
        if run_start < match.start() and open_tags and not skipped_depth:
            spans.append((run_start, match.start()))
        run_start = match.end()

        name = match.group("name")
        if name is None:
            continue
        local = name.rpartition(":")[2]
        if match.group("close"):
            open_tags.pop()
            if local in SKIPPED_ELEMENTS:
                skipped_depth -= 1
        elif not match.group(0).endswith("/>"):
            open_tags.append(local)
            if local in SKIPPED_ELEMENTS:
                skipped_depth += 1
        if not open_tags:
            # Root element closed
            break
    return spans


class TextSlot(NamedTuple):
    """One text node: element.text ("text") or element.tail ("tail")."""
    element: object
    attribute: str


class MarkupTextDocument:
    """
    Parsed XHTML document exposing its text nodes as an arena.

    Handles are list indexes into slots captured once at parse time, in
    document order. lxml supplies the decoded node texts; spans[handle] is
    the node's (start, end) offset in the source markup, which is where a
    changed text is written back.
    """

    def __init__(self, markup: str, unit_id: str = ""):
        self.unit_id = unit_id
        self.markup = markup
        match = _RE_ROOT_START.search(markup)
        if match is None:
            raise ExtractionError("Markup has no root element", unit_id=unit_id or None)

        stripped = markup[match.start():].rstrip()

        parser = etree.XMLParser(
            resolve_entities=False,
            strip_cdata=False,
            remove_blank_text=False,
            load_dtd=False,
            no_network=True,
            recover=False,
        )
        try:
            self.root = etree.fromstring(_numeric_entities(stripped), parser)
        except etree.XMLSyntaxError as e:
            raise ExtractionError(f"Malformed markup: {e}", unit_id=unit_id or None) from e

        self.slots: list[TextSlot] = []
        self._collect(self.root)

        self.spans = _text_spans(markup, match.start())
        if len(self.spans) != len(self.slots):
            raise ExtractionError(
                f"Found {len(self.spans)} text runs in the source for {len(self.slots)} text nodes",
                unit_id=unit_id or None,
            )
        self._changed: dict[int, str] = {}

    def _collect(self, element) -> None:
        # Comments and processing instructions have a non-str tag; only their tail is prose
        if isinstance(element.tag, str) and _local_name(element) not in SKIPPED_ELEMENTS:
            if element.text is not None:
                self.slots.append(TextSlot(element, "text"))
            for child in element:
                self._collect(child)
                if child.tail is not None:
                    self.slots.append(TextSlot(child, "tail"))

    def __len__(self) -> int:
        return len(self.slots)

    @property
    def texts(self) -> list[str]:
        return [self.get_text(handle) for handle in range(len(self.slots))]

    def get_text(self, handle: int) -> str:
        slot = self.slots[handle]
        return getattr(slot.element, slot.attribute)

    def set_text(self, handle: int, text: str) -> None:
        slot = self.slots[handle]
        try:
            setattr(slot.element, slot.attribute, text)
        except ValueError as e:
            raise TranslationError(
                f"Translated text is not valid XML character data: {e}",
                unit_ids=[self.node_id(handle)],
            ) from e
        self._changed[handle] = text

    def node_id(self, handle: int) -> str:
        return f"{self.unit_id}:node{handle}"

    def snippets(self) -> list[Snippet]:
        """Text nodes as snippets; snippet.index is the node handle."""
        return [
            Snippet(index=handle, text=self.get_text(handle), unit_id=self.node_id(handle))
            for handle in range(len(self.slots))
        ]

    def serialize(self) -> str:
        """
        Source markup with every changed text node spliced in, escaped.

        Bytes outside changed nodes are copied from the source unchanged.
        """
        pieces: list[str] = []
        position = 0
        for handle in sorted(self._changed):
            start, end = self.spans[handle]
            pieces.append(self.markup[position:start])
            pieces.append(html.escape(self._changed[handle], quote=False))
            position = end
        pieces.append(self.markup[position:])
        return "".join(pieces)


class DomTextPipeline:
    """
    Translates XHTML documents through a BatchScheduler.

    Counters accumulate over every document translated by this instance.
    """

    def __init__(self, scheduler: BatchScheduler, port: TranslationPort):
        self.scheduler = scheduler
        self.port = port
        self.snippets_total = 0
        self.batches_total = 0

    def translate_markup(self, markup: str, unit_id: str = "") -> str:
        """
        Translate the text nodes of one document.

        Raises:
            ExtractionError: The markup cannot be parsed
            TranslationError: A batch failed
            IntegrityError: A placeholder token was dropped, invented or duplicated
        """
        protected, mapping = protect_special_tags(markup)
        document = MarkupTextDocument(protected, unit_id=unit_id)
        snippets = document.snippets()

        translated = self.scheduler.run(snippets, self.port)
        for snippet in translated:
            # Unchanged nodes keep their source bytes (entity references, CDATA)
            if snippet.text != document.get_text(snippet.index):
                document.set_text(snippet.index, snippet.text)

        self.snippets_total += len(snippets)
        self.batches_total += self.scheduler.count_batches(len(snippets))

        logger.debug("%s: %d text nodes, %d placeholders", unit_id or "markup",
                     len(snippets), len(mapping))
        return mapping.restore(document.serialize())
