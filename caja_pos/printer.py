"""ESC/POS thermal printer output for rendered tickets."""

from __future__ import annotations

import os
import textwrap
import threading
from io import BytesIO
from pathlib import Path
from time import sleep

import requests

from caja_pos.config import (
    BACKEND_TIMEOUT_SECONDS,
    PRINTER_FONT_PATH,
    PRINTER_FONT_SIZE,
    PRINTER_LEFT_INDENT_PX,
    PRINTER_TAIL_SPACER_PX,
    PRINTER_USB_PRODUCT_ID,
    PRINTER_USB_VENDOR_ID,
    PRINTER_WIDTH_PX,
)
from caja_pos.logs import get_logger
from caja_pos.ticket import BOLD, DIVIDER, SMALL, TITLE, TicketDocument, TicketRow

logger = get_logger(__name__)

# Separator tuning values.
# Keep these grouped so thermal-print behavior can be tuned in one place.
_SECTION_SEPARATOR_HEIGHT_PX = 12
_SECTION_SEPARATOR_THICKNESS_PX = 2
_SECTION_SEPARATOR_STRIPE_HEIGHT_PX = 2
_SECTION_SEPARATOR_PAUSE_SECONDS = 0.05
_DASH_LENGTH_PX = 8
_DASH_GAP_PX = 6
_LINE_EXTRA_PX = 8
_LOGO_MAX_HEIGHT_PX = 160
_FONT_OVERRIDE_ENV = "CAJA_POS_PRINTER_FONT_PATH"
_LINUX_FONT_FALLBACKS = (
    "/usr/share/fonts/TTF/DejaVuSans.ttf",
    "/usr/share/fonts/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/noto/NotoSans-Regular.ttf",
    "/usr/share/fonts/liberation/LiberationSans-Regular.ttf",
)


def resolve_printer_font_path() -> str:
    """
    Resolve a printer font path.

    Resolution order:
    1. CAJA_POS_PRINTER_FONT_PATH (if set)
    2. PRINTER_FONT_PATH
    3. Known Linux fallbacks
    """
    env_override = os.environ.get(_FONT_OVERRIDE_ENV, "").strip()
    candidates: list[str] = []
    if env_override:
        candidates.append(env_override)
    candidates.append(PRINTER_FONT_PATH)
    candidates.extend(_LINUX_FONT_FALLBACKS)

    seen: set[str] = set()
    for candidate in candidates:
        if not candidate or candidate in seen:
            continue
        seen.add(candidate)
        if Path(candidate).is_file():
            return candidate

    raise RuntimeError(
        f"No usable printer font found. Set {_FONT_OVERRIDE_ENV} to a valid .ttf/.otf file. "
        f"Tried: {', '.join(seen)}"
    )


def check_printer_dependencies() -> tuple[bool, str]:
    """Check whether printer dependencies are importable."""
    try:
        from escpos.printer import Usb  # noqa: F401
        from PIL import ImageFont

        font_path = resolve_printer_font_path()
        ImageFont.truetype(font_path, PRINTER_FONT_SIZE)
    except Exception as exc:
        return (False, f"Printer deps unavailable: {exc}")
    return (True, "Printer ready")


def _render_text_row(text: str, font: object, centered: bool = False) -> object:
    from PIL import Image, ImageDraw

    measure = Image.new("1", (1, 1), color=1)
    measure_draw = ImageDraw.Draw(measure)
    bbox = measure_draw.textbbox((0, 0), text or " ", font=font)
    text_width = bbox[2] - bbox[0]
    text_height = bbox[3] - bbox[1]
    canvas_height = max(12, text_height + _LINE_EXTRA_PX)

    img = Image.new("1", (PRINTER_WIDTH_PX, canvas_height), color=1)
    draw = ImageDraw.Draw(img)
    if centered:
        x = max(0, (PRINTER_WIDTH_PX - text_width) // 2 - bbox[0])
    else:
        x = PRINTER_LEFT_INDENT_PX
    # Offset by bbox top so descenders (g, y, p, etc.) are not clipped.
    y = (canvas_height - text_height) // 2 - bbox[1]
    draw.text((x, y), text, font=font, fill=0)
    return img


def _render_spacer(height_px: int) -> object:
    from PIL import Image

    return Image.new("1", (PRINTER_WIDTH_PX, max(1, height_px)), color=1)


def _wrap_to_px(text: str, font: object, max_width_px: int) -> list[str]:
    """Split a row into as many lines as needed to fit the paper width."""
    from PIL import Image, ImageDraw

    measure = Image.new("1", (1, 1), color=1)
    draw = ImageDraw.Draw(measure)
    if draw.textbbox((0, 0), text, font=font)[2] <= max_width_px:
        return [text]

    indent = text[: len(text) - len(text.lstrip())]
    for width in range(max(8, len(text)), 4, -1):
        wrapped = textwrap.wrap(text, width=width, subsequent_indent=indent) or [text]
        if all(draw.textbbox((0, 0), part, font=font)[2] <= max_width_px for part in wrapped):
            return wrapped
    return textwrap.wrap(text, width=4) or [text]


def _render_section_separator() -> object:
    from PIL import Image, ImageDraw

    img = Image.new("1", (PRINTER_WIDTH_PX, _SECTION_SEPARATOR_HEIGHT_PX), color=1)
    draw = ImageDraw.Draw(img)
    top = max(0, (_SECTION_SEPARATOR_HEIGHT_PX - _SECTION_SEPARATOR_THICKNESS_PX) // 2)
    bottom = min(_SECTION_SEPARATOR_HEIGHT_PX - 1, top + _SECTION_SEPARATOR_THICKNESS_PX - 1)
    for x in range(0, PRINTER_WIDTH_PX, _DASH_LENGTH_PX + _DASH_GAP_PX):
        draw.rectangle((x, top, min(PRINTER_WIDTH_PX - 1, x + _DASH_LENGTH_PX - 1), bottom), fill=0)
    return img


def _print_section_separator(printer: object) -> None:
    """
    Print the dashed separator in short stripes with tiny pauses.

    This reduces instantaneous heat so the line stays crisp
    instead of bleeding into adjacent dots.
    """
    separator = _render_section_separator()
    for top in range(0, separator.height, _SECTION_SEPARATOR_STRIPE_HEIGHT_PX):
        bottom = min(separator.height, top + _SECTION_SEPARATOR_STRIPE_HEIGHT_PX)
        stripe = separator.crop((0, top, PRINTER_WIDTH_PX, bottom))
        printer.image(stripe)
        if bottom < separator.height:
            sleep(_SECTION_SEPARATOR_PAUSE_SECONDS)


def _load_logo(url: str) -> object | None:
    """Fetch and dither the ticket logo; any failure just leaves the logo out."""
    if not url:
        return None
    try:
        from PIL import Image

        response = requests.get(url, timeout=BACKEND_TIMEOUT_SECONDS)
        response.raise_for_status()
        logo = Image.open(BytesIO(response.content))
        logo.thumbnail((PRINTER_WIDTH_PX - 2 * PRINTER_LEFT_INDENT_PX, _LOGO_MAX_HEIGHT_PX))
        canvas = Image.new("1", (PRINTER_WIDTH_PX, logo.height), color=1)
        canvas.paste(logo.convert("1"), ((PRINTER_WIDTH_PX - logo.width) // 2, 0))
        return canvas
    except Exception as exc:
        logger.info("ticket_logo_skipped", url=url, error=str(exc))
        return None


class EscposTicketPrinter:
    """Rasterizes ticket rows with Pillow and sends them to a USB ESC/POS printer.

    Blocking: call it from a worker thread. Jobs are serialized, and each logo
    URL is fetched at most once per run.
    """

    def __init__(self, vendor_id: int = PRINTER_USB_VENDOR_ID, product_id: int = PRINTER_USB_PRODUCT_ID) -> None:
        self.vendor_id = vendor_id
        self.product_id = product_id
        self._logos: dict[str, object | None] = {}
        self._lock = threading.Lock()

    def logo_for(self, url: str) -> object | None:
        if not url:
            return None
        if url not in self._logos:
            self._logos[url] = _load_logo(url)
        return self._logos[url]

    def _fonts(self) -> dict[str, object]:
        from PIL import ImageFont

        font_path = resolve_printer_font_path()
        return {
            TITLE: ImageFont.truetype(font_path, PRINTER_FONT_SIZE + 8),
            BOLD: ImageFont.truetype(font_path, PRINTER_FONT_SIZE + 2),
            SMALL: ImageFont.truetype(font_path, max(10, PRINTER_FONT_SIZE - 6)),
            "normal": ImageFont.truetype(font_path, PRINTER_FONT_SIZE),
        }

    def _row_images(self, row: TicketRow, fonts: dict[str, object]) -> list[object]:
        font = fonts.get(row.style, fonts["normal"])
        max_width = PRINTER_WIDTH_PX - 2 * PRINTER_LEFT_INDENT_PX
        return [_render_text_row(part, font, centered=row.centered) for part in _wrap_to_px(row.text, font, max_width)]

    def print_document(self, document: TicketDocument) -> None:
        """Print every row in order and cut the ticket at the end."""
        try:
            from escpos.printer import Usb
        except Exception as exc:
            raise RuntimeError(f"Printer dependencies unavailable: {exc}") from exc

        with self._lock:
            fonts = self._fonts()
            logo = self.logo_for(document.logo_url)
            printer = Usb(self.vendor_id, self.product_id)
            self._print_rows(printer, document, logo, fonts)
        logger.info("ticket_printed", title=document.title, rows=len(document.rows))

    def _print_rows(
        self, printer: object, document: TicketDocument, logo: object | None, fonts: dict[str, object]
    ) -> None:
        if logo is not None:
            printer.image(logo)

        for row in document.rows:
            if row.style == DIVIDER:
                _print_section_separator(printer)
                continue
            for img in self._row_images(row, fonts):
                printer.image(img)

        # Extra tail for easier tearing.
        printer.image(_render_spacer(PRINTER_TAIL_SPACER_PX))
        printer.cut()
