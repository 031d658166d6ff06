"""
High-level utilities for rendering StoryReel storybooks into printable PDFs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Optional, Sequence
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_JUSTIFY
from reportlab.lib.pagesizes import A4, LETTER
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import inch, mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas
from reportlab.platypus import Frame, Paragraph

from storyreel.assets import DisplayReferenceRegistry, ImageAsset
from storyreel.pipeline.bundle import load_bundle
from storyreel.pipeline.pipeline import (
    RenderedImagePage,
    RenderedTextPage,
    render_storybook,
)
from storyreel.story_generation import StorybookResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageLayoutConfig:
    text_background: colors.Color
    image_background: colors.Color
    cover_background: colors.Color
    accent_color: colors.Color
    text_color: colors.Color
    caption_color: colors.Color


DEFAULT_LAYOUT = PageLayoutConfig(
    text_background=colors.HexColor("#F5EEDD"),
    image_background=colors.HexColor("#1F2433"),
    cover_background=colors.HexColor("#3F3C8F"),
    accent_color=colors.HexColor("#818CF8"),
    text_color=colors.HexColor("#2A2A35"),
    caption_color=colors.HexColor("#6B6F80"),
)


PAGE_SIZES = {
    "a4": A4,
    "letter": LETTER,
    "square": (8 * inch, 8 * inch),
}


class StorybookPDFBuilder:
    """
    Render storybooks into printable PDFs.

    The builder creates a cover page with the story title followed by one PDF page per
    storybook page, in order. Image pages whose index has no matching image are left
    out, matching what a viewer shows.
    """

    def __init__(
        self,
        *,
        page_size: tuple[float, float] = PAGE_SIZES["square"],
        margin_mm: float = 18.0,
        layout: PageLayoutConfig = DEFAULT_LAYOUT,
    ) -> None:
        self.page_size = page_size
        self.margin = margin_mm * mm
        self.layout = layout

        self.title_style = ParagraphStyle(
            name="StoryTitle",
            fontName="Helvetica-Bold",
            fontSize=30,
            leading=36,
            alignment=TA_CENTER,
            textColor=colors.white,
            spaceAfter=12,
        )
        self.subtitle_style = ParagraphStyle(
            name="StorySubtitle",
            fontName="Helvetica",
            fontSize=15,
            leading=20,
            alignment=TA_CENTER,
            textColor=colors.white,
        )
        self.body_style = ParagraphStyle(
            name="Body",
            fontName="Times-Roman",
            fontSize=18,
            leading=28,
            alignment=TA_JUSTIFY,
            textColor=self.layout.text_color,
            spaceAfter=14,
        )
        self.footer_style = ParagraphStyle(
            name="Footer",
            fontName="Helvetica-Oblique",
            fontSize=10,
            leading=12,
            alignment=TA_CENTER,
            textColor=self.layout.caption_color,
        )

    def build_from_bundle(self, bundle_path: Path | str, output_path: Path | str) -> Path:
        with DisplayReferenceRegistry() as registry:
            storybook, images = load_bundle(bundle_path, registry)
            return self.build(storybook, images, output_path)

    def build(
        self,
        storybook: StorybookResult,
        images: Sequence[ImageAsset],
        output_path: Path | str,
    ) -> Path:
        output_file = Path(output_path)
        output_file.parent.mkdir(parents=True, exist_ok=True)

        pdf = canvas.Canvas(str(output_file), pagesize=self.page_size)
        pdf.setTitle(storybook.title)
        width, height = self.page_size

        pages = render_storybook(storybook, images)
        self._draw_cover_page(pdf, storybook.title, len(pages), width, height)

        for page in pages:
            match page:
                case RenderedTextPage():
                    self._draw_text_page(pdf, page, width, height)
                case RenderedImagePage():
                    self._draw_image_page(pdf, page, width, height)

        pdf.save()
        return output_file

    # ------------------------------------------------------------------ cover rendering

    def _draw_cover_page(
        self,
        pdf: canvas.Canvas,
        title: str,
        page_count: int,
        width: float,
        height: float,
    ) -> None:
        pdf.setFillColor(self.layout.cover_background)
        pdf.rect(0, 0, width, height, stroke=0, fill=1)

        frame = Frame(
            self.margin,
            self.margin,
            width - 2 * self.margin,
            height * 0.6,
            showBoundary=0,
        )
        frame.addFromList(
            [
                Paragraph(escape(title), self.title_style),
                Paragraph(f"An illustrated story in {page_count} pages", self.subtitle_style),
            ],
            pdf,
        )
        pdf.showPage()

    # ------------------------------------------------------------------ text pages

    def _draw_text_page(
        self,
        pdf: canvas.Canvas,
        page: RenderedTextPage,
        width: float,
        height: float,
    ) -> None:
        pdf.setFillColor(self.layout.text_background)
        pdf.rect(0, 0, width, height, stroke=0, fill=1)

        bubble_width = width - (self.margin * 2 * 0.6)
        bubble_height = height - (self.margin * 2 * 0.6)
        bubble_x = (width - bubble_width) / 2
        bubble_y = (height - bubble_height) / 2

        pdf.saveState()
        pdf.setFillColor(self._lighten(self.layout.accent_color, 0.85))
        pdf.roundRect(bubble_x, bubble_y, bubble_width, bubble_height, 26, stroke=0, fill=1)
        pdf.restoreState()

        content_width = bubble_width - (self.margin * 2 * 0.3)
        content_height = bubble_height - (self.margin * 2 * 0.3)
        frame = Frame(
            bubble_x + (bubble_width - content_width) / 2,
            bubble_y + (bubble_height - content_height) / 2,
            content_width,
            content_height,
            showBoundary=0,
        )

        paragraphs = [
            Paragraph(escape(block).replace("\n", "<br/>"), self.body_style)
            for block in filter(None, (chunk.strip() for chunk in page.content.split("\n\n")))
        ]
        frame.addFromList(paragraphs, pdf)

        self._draw_footer(pdf, f"Page {page.number}", width)
        pdf.showPage()

    # ------------------------------------------------------------------ image pages

    def _draw_image_page(
        self,
        pdf: canvas.Canvas,
        page: RenderedImagePage,
        width: float,
        height: float,
    ) -> None:
        pdf.setFillColor(self.layout.image_background)
        pdf.rect(0, 0, width, height, stroke=0, fill=1)

        image_reader = self._read_image(page.asset)
        if image_reader is not None:
            img_width, img_height = image_reader.getSize()
            scale = min(
                (width - 2 * self.margin) / img_width,
                (height - 2 * self.margin) / img_height,
            )
            draw_width = img_width * scale
            draw_height = img_height * scale
            pdf.drawImage(
                image_reader,
                (width - draw_width) / 2,
                (height - draw_height) / 2,
                draw_width,
                draw_height,
                preserveAspectRatio=True,
                mask="auto",
            )

        self._draw_footer(pdf, f"Page {page.number}", width)
        pdf.showPage()

    # ------------------------------------------------------------------ helpers

    def _draw_footer(self, pdf: canvas.Canvas, text: str, width: float) -> None:
        footer_frame = Frame(
            self.margin,
            10,
            width - 2 * self.margin,
            20,
            showBoundary=0,
        )
        footer_frame.addFromList([Paragraph(text, self.footer_style)], pdf)

    @staticmethod
    def _read_image(asset: ImageAsset) -> Optional[ImageReader]:
        try:
            reader = ImageReader(BytesIO(asset.data))
            reader.getSize()
        except Exception:
            logger.warning("Could not decode image %s; leaving its page blank.", asset.file_name)
            return None
        return reader

    @staticmethod
    def _lighten(color: colors.Color, amount: float = 0.5) -> colors.Color:
        amount = max(0.0, min(amount, 1.0))
        r = color.red + (1 - color.red) * amount
        g = color.green + (1 - color.green) * amount
        b = color.blue + (1 - color.blue) * amount
        return colors.Color(r, g, b)
