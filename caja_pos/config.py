"""Runtime configuration defaults for the backend, session storage and printing."""

from __future__ import annotations

import os


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


BACKEND_URL = os.environ.get("CAJA_POS_BACKEND_URL", "http://localhost:5000/api").rstrip("/")
BACKEND_TIMEOUT_SECONDS = _env_float("CAJA_POS_BACKEND_TIMEOUT", 20.0)

DB_PATH = os.environ.get("CAJA_POS_DB_PATH", "data/session.db")
DEBUG_LOG_PATH = os.environ.get("CAJA_POS_DEBUG_LOG", "/tmp/caja-pos-debug.log")

POLL_INTERVAL_SECONDS = _env_float("CAJA_POS_POLL_INTERVAL", 15.0)
SEEN_SET_LIMIT = 400

AUTO_PRINT_DELAY_SECONDS = 0.5
AUTO_PRINT_INTERVAL_SECONDS = 1.5
AUTO_PRINT_MAX_COPIES = 5

PRINTER_USB_VENDOR_ID = 0x28E9
PRINTER_USB_PRODUCT_ID = 0x0289
PRINTER_WIDTH_PX = 384
PRINTER_FONT_SIZE = 24
PRINTER_FONT_PATH = "/System/Library/Fonts/SFNS.ttf"
PRINTER_LEFT_INDENT_PX = 8
PRINTER_TAIL_SPACER_PX = 70
TICKET_WIDTH_CHARS = 32
