"""
Patient PDF report.

`render` turns a record into an ordered list of content blocks, `layout`
paints them onto A4 pages (repeated banner, `Page i of n` footer) and
`write_pdf` saves the pages with Pillow's PDF writer.
"""

import os
import re
import logging
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Callable, List, Optional

from PIL import Image, ImageDraw, ImageFont

from logic.browser import parse_instant
from model.models import ClassificationOutcome, PatientRecord

logger = logging.getLogger(__name__)

NA = "N/A"
BRAND = "KeratoScan AI"

# A4 at 150 dpi
DPI = 150
PAGE_W, PAGE_H = 1240, 1754
MARGIN = 118
BANNER_H = 88
FOOTER_H = 70
CONTENT_TOP = BANNER_H + 60
CONTENT_BOTTOM = PAGE_H - MARGIN - FOOTER_H // 2

NAVY = (30, 58, 138)
PANEL = (241, 245, 249)
GREY = (128, 128, 128)
BLACK = (0, 0, 0)
WHITE = (255, 255, 255)


@dataclass
class Block:
    kind: str                         # header / patient / analysis / report / image / new_analysis
    title: str
    lines: List[str] = field(default_factory=list)
    image: Optional[Image.Image] = None


def format_date_time(value: str, tz: tzinfo) -> str:
    """`dd/mm/YYYY, HH:MM:SS` in the reference zone; N/A when empty, raw text when unparseable."""
    if not value:
        return NA
    instant = parse_instant(value)
    if instant is None:
        return value
    return instant.astimezone(tz).strftime("%d/%m/%Y, %H:%M:%S")


def report_filename(record: PatientRecord) -> str:
    ident = re.sub(r"[^A-Za-z0-9._-]+", "_", (record.id_number or "").strip()).strip("._")
    return f"medical_report_{ident or 'unknown'}.pdf"


def _or_na(value) -> str:
    if value is None:
        return NA
    text = str(value).strip()
    return text if text else NA


def _font(size: int):
    return ImageFont.load_default(size=size)


class ReportRenderer:
    def __init__(self, tz: tzinfo, image_loader: Optional[Callable[[str], Image.Image]] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.tz = tz
        self.image_loader = image_loader
        self.clock = clock or (lambda: datetime.now(self.tz))

        self.f_banner = _font(18)
        self.f_title = _font(42)
        self.f_section = _font(28)
        self.f_body = _font(22)
        self.f_footer = _font(16)

    # ---------- content ----------
    def render(self, record: PatientRecord, current_outcome: Optional[ClassificationOutcome] = None) -> List[Block]:
        first = _or_na(record.first_name)
        last = _or_na(record.last_name)
        blocks = [
            Block("header", "Patient Medical Report"),
            Block("patient", "Patient Information", [
                f"Name: {first} {last}",
                f"ID Number: {_or_na(record.id_number)}",
                f"Age: {_or_na(record.age)}",
                f"Gender: {_or_na(record.gender)}",
                f"Date: {format_date_time(record.date_time, self.tz)}",
            ]),
            Block("analysis", "AI Analysis Results",
                  [ln for ln in (record.prediction or "").strip().split("\n") if ln.strip()] or [NA]),
            Block("report", "Medical Report", (record.report or "").strip().split("\n") if (record.report or "").strip() else [NA]),
        ]

        if record.image_url and record.image_url.strip():
            image = self._load_image(record.image_url.strip())
            if image is not None:
                blocks.append(Block("image", "Corneal Topography Image", image=image))

        if current_outcome is not None:
            blocks.append(Block("new_analysis", "New Analysis Results", current_outcome.text.split("\n")))
        return blocks

    def _load_image(self, ref: str) -> Optional[Image.Image]:
        if self.image_loader is None:
            return None
        try:
            return self.image_loader(ref).convert("RGB")
        except Exception as e:
            logger.error("Error adding image to PDF: %s", e)
            return None

    # ---------- pagination ----------
    def layout(self, blocks: List[Block]) -> List[Image.Image]:
        generated = self.clock().strftime("%d/%m/%Y, %H:%M:%S")
        pages: List[Image.Image] = []
        state = {"draw": None, "y": CONTENT_TOP}

        def new_page():
            page = Image.new("RGB", (PAGE_W, PAGE_H), WHITE)
            draw = ImageDraw.Draw(page)
            draw.rectangle([0, 0, PAGE_W, BANNER_H], fill=NAVY)
            draw.text((PAGE_W // 2, BANNER_H // 2), f"{BRAND} - Medical Report",
                      font=self.f_banner, fill=WHITE, anchor="mm")
            draw.text((PAGE_W - MARGIN, BANNER_H // 2), f"Generated: {generated}",
                      font=self.f_banner, fill=WHITE, anchor="rm")
            pages.append(page)
            state["draw"] = draw
            state["y"] = CONTENT_TOP

        def ensure(height: int):
            if state["y"] + height > CONTENT_BOTTOM and state["y"] > CONTENT_TOP:
                new_page()

        new_page()
        body_h = self._line_height(self.f_body)
        section_h = self._line_height(self.f_section) + 24
        width = PAGE_W - 2 * MARGIN

        for block in blocks:
            if block.kind == "header":
                draw = state["draw"]
                draw.text((PAGE_W // 2, state["y"]), block.title, font=self.f_title, fill=NAVY, anchor="mt")
                state["y"] += self._line_height(self.f_title) + 16
                draw.line([MARGIN, state["y"], PAGE_W - MARGIN, state["y"]], fill=NAVY, width=3)
                state["y"] += 40
                continue

            if block.kind == "image":
                img = self._fit_image(block.image, int(width * 0.85), CONTENT_BOTTOM - CONTENT_TOP - section_h)
                ensure(section_h + img.height)
                self._section_title(state, block.title)
                pages[-1].paste(img, ((PAGE_W - img.width) // 2, state["y"]))
                state["y"] += img.height + 40
                continue

            lines = [w for ln in block.lines for w in self._wrap(ln, self.f_body, width - 40)]
            # keep the title together with at least a few lines
            ensure(section_h + body_h * min(len(lines), 3))
            self._section_title(state, block.title)
            for ln in lines:
                if state["y"] + body_h > CONTENT_BOTTOM:
                    new_page()
                state["draw"].text((MARGIN + 20, state["y"]), ln, font=self.f_body, fill=BLACK)
                state["y"] += body_h
            state["y"] += 40

        total = len(pages)
        for i, page in enumerate(pages, start=1):
            draw = ImageDraw.Draw(page)
            fy = PAGE_H - MARGIN // 2
            draw.text((PAGE_W // 2, fy), f"Page {i} of {total}", font=self.f_footer, fill=GREY, anchor="mm")
            draw.text((PAGE_W - MARGIN, fy), f"{BRAND} - Confidential Medical Report",
                      font=self.f_footer, fill=GREY, anchor="rm")
        return pages

    def write_pdf(self, record: PatientRecord, directory: str,
                  current_outcome: Optional[ClassificationOutcome] = None) -> str:
        pages = self.layout(self.render(record, current_outcome))
        os.makedirs(directory, exist_ok=True)
        path = os.path.join(directory, report_filename(record))
        pages[0].save(path, "PDF", resolution=float(DPI), save_all=True, append_images=pages[1:])
        logger.info("Report written to %s (%d pages)", path, len(pages))
        return path

    # ---------- helpers ----------
    def _section_title(self, state, title: str):
        draw = state["draw"]
        h = self._line_height(self.f_section) + 16
        draw.rectangle([MARGIN, state["y"], PAGE_W - MARGIN, state["y"] + h], fill=PANEL)
        draw.text((MARGIN + 20, state["y"] + 8), title, font=self.f_section, fill=NAVY)
        state["y"] += h + 8

    @staticmethod
    def _line_height(font) -> int:
        left, top, right, bottom = font.getbbox("Ay")
        return int((bottom - top) * 1.5) + 2

    @staticmethod
    def _fit_image(img: Image.Image, max_w: int, max_h: int) -> Image.Image:
        scale = min(max_w / img.width, max_h / img.height)
        size = (max(1, int(img.width * scale)), max(1, int(img.height * scale)))
        return img.resize(size, Image.LANCZOS)

    def _wrap(self, text: str, font, max_width: int) -> List[str]:
        if not text.strip():
            return [""]
        words = text.split()
        lines, cur = [], ""
        for word in words:
            candidate = f"{cur} {word}".strip()
            if font.getlength(candidate) <= max_width or not cur:
                cur = candidate
            else:
                lines.append(cur)
                cur = word
        lines.append(cur)
        return lines
