# booklingo/processors/pdf_layout.py
"""
One-pass pagination of translated text and images.

Every page-break decision is a function of the running vertical cursor
against two fixed thresholds (min_y_pos / max_y_pos). There is no lookahead.

Phases of each unit:
    paragraphs (inside BT/ET) -> end of text block -> images -> next unit

Rules:
- A line is emitted at the cursor, then the cursor moves down line_height.
  If the line would end below min_y_pos, a new page is opened first.
- After each paragraph the cursor moves down paragraph_spacing.
- After all paragraphs of a unit the text block is closed and the unit's
  images are placed, scaled by min(max_w / w, max_h / h, 1.0) (never
  upscaled), at the left margin. An image that would end below min_y_pos
  goes to a new page.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from booklingo.config.settings import PdfLayoutOptions
from booklingo.models.types import ImageDescriptor, PageUnit

from .pdf_operators import DEFAULT_FONT_ID, PageContent

# Module logger
logger = logging.getLogger(__name__)


@dataclass
class PaginationState:
    """
    Mutable pagination state threaded through the engine.

    Only PaginationEngine mutates it, in a single synchronous pass.
    """
    pages: list[PageContent] = field(default_factory=list)
    y: float = 0.0

    @property
    def page(self) -> PageContent:
        return self.pages[-1]


@dataclass(frozen=True)
class ImagePlacement:
    """Scaled size of one image."""
    scale: float
    width: float
    height: float


class PaginationEngine:
    """Lays out PageUnits onto fixed-size pages."""

    def __init__(self, options: Optional[PdfLayoutOptions] = None, font_id: str = DEFAULT_FONT_ID):
        self.options = options or PdfLayoutOptions()
        self.font_id = font_id

    # ------------------------------------------------------------------
    # Pure helpers
    # ------------------------------------------------------------------
    def estimate_width(self, text: str) -> float:
        """Fixed-width heuristic: character count times char_width."""
        return len(text) * self.options.char_width

    def wrap_paragraph(self, paragraph: str) -> list[str]:
        """
        Greedy word wrap against max_width.

        A word wider than max_width on its own still gets its own line.
        """
        lines: list[str] = []
        line = ""
        for word in paragraph.split():
            candidate = f"{line} {word}" if line else word
            if line and self.estimate_width(candidate) > self.options.max_width:
                lines.append(line)
                line = word
            else:
                line = candidate
        if line:
            lines.append(line)
        return lines

    def image_placement(self, image: ImageDescriptor) -> ImagePlacement:
        opts = self.options
        if image.width <= 0 or image.height <= 0:
            return ImagePlacement(scale=1.0, width=0.0, height=0.0)
        scale = min(opts.max_image_width / image.width, opts.max_image_height / image.height, 1.0)
        return ImagePlacement(scale=scale, width=image.width * scale, height=image.height * scale)

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------
    def new_state(self) -> PaginationState:
        state = PaginationState()
        self._open_page(state)
        return state

    def _open_page(self, state: PaginationState) -> None:
        if state.pages:
            state.page.end_text()
        state.pages.append(PageContent())
        state.y = self.options.max_y_pos
        logger.debug("Opened page %d", len(state.pages))

    def _ensure_room(self, state: PaginationState, height: float) -> None:
        """Open a new page if drawing `height` at the cursor would cross min_y_pos."""
        if state.y - height < self.options.min_y_pos and not self._at_page_top(state):
            self._open_page(state)

    def _at_page_top(self, state: PaginationState) -> bool:
        # Content taller than the page area goes on a fresh page once, never loops
        return state.page.is_empty and state.y == self.options.max_y_pos

    def _emit_line(self, state: PaginationState, line: str) -> None:
        opts = self.options
        self._ensure_room(state, opts.line_height)
        state.page.begin_text(self.font_id, opts.font_size)
        state.page.show_text(opts.left_margin, state.y, line)
        state.y -= opts.line_height

    def _end_text(self, state: PaginationState) -> None:
        state.page.end_text()

    def _place_image(self, state: PaginationState, image: ImageDescriptor) -> None:
        placement = self.image_placement(image)
        if placement.height <= 0:
            logger.warning("Skipping image %s with invalid size %dx%d",
                           image.resource_id, image.width, image.height)
            return
        self._ensure_room(state, placement.height)
        state.page.draw_image(
            image.resource_id,
            self.options.left_margin,
            state.y - placement.height,
            placement.width,
            placement.height,
        )
        state.y -= placement.height + self.options.image_gap

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------
    def write_unit(self, state: PaginationState, unit: PageUnit) -> None:
        """Lay out one unit's paragraphs, then its images."""
        for paragraph in unit.paragraphs:
            lines = self.wrap_paragraph(paragraph)
            if not lines:
                continue
            for line in lines:
                self._emit_line(state, line)
            state.y -= self.options.paragraph_spacing

        self._end_text(state)
        for image in unit.images:
            self._place_image(state, image)

    def paginate(self, units: Iterable[PageUnit]) -> list[PageContent]:
        """
        Lay out all units in order.

        Returns:
            Ordered page contents; always at least one page
        """
        state = self.new_state()
        unit_count = 0
        for unit in units:
            self.write_unit(state, unit)
            unit_count += 1
        state.page.end_text()
        logger.info("Paginated %d units onto %d pages", unit_count, len(state.pages))
        return state.pages
