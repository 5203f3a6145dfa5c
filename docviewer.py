# -*- coding: utf-8 -*-

"""
File viewer: renders one grid file as an HTML page.

txt -> <pre>, csv / xls / xlsx -> pandas tables, images and pdf -> embedded
via the raw /file route.
"""

from __future__ import annotations
import logging
import warnings
import zipfile
from pathlib import Path
from urllib.parse import quote

import pandas as pd
import xlrd
from markupsafe import escape
from openpyxl.utils.exceptions import InvalidFileException

from docstore import UnsupportedFileType

logger = logging.getLogger(__name__)

IMAGE_EXTS = {"png", "jpg", "jpeg", "bmp"}
SHEET_EXTS = {"xls", "xlsx"}
VIEWABLE_EXTS = IMAGE_EXTS | SHEET_EXTS | {"txt", "csv", "pdf"}

# What a damaged or unreadable file raises while being rendered
READ_ERRORS = (OSError, ValueError, zipfile.BadZipFile, InvalidFileException, xlrd.XLRDError)

PAGE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>{title}</title>
<style>
body {{ font-family: sans-serif; background: #1a0033; color: #fff; margin: 16px; }}
pre {{ white-space: pre-wrap; word-break: break-all; }}
table {{ border-collapse: collapse; background: #fff; color: #000; margin-bottom: 2em; }}
th, td {{ border: 1px solid #999; padding: 4px 8px; }}
img {{ max-width: 100%; }}
embed {{ width: 100%; height: 90vh; }}
</style>
</head>
<body>
<h1>{title}</h1>
{body}
</body>
</html>
"""


def raw_url(path: str) -> str:
    # relative so it works under any mount prefix
    return f"file?file={quote(path, safe='')}"


# ---------- Renderers ----------
def _render_text(p: Path) -> str:
    return f"<pre>{escape(p.read_text(encoding='utf-8', errors='replace'))}</pre>"

def _render_csv(p: Path) -> str:
    try:
        with warnings.catch_warnings():
            # rows longer than the header must not shift into an implicit index
            warnings.simplefilter("error", pd.errors.ParserWarning)
            df = pd.read_csv(p, dtype=str, keep_default_na=False, index_col=False)
    except (pd.errors.ParserError, pd.errors.ParserWarning,
            pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        logger.info("CSV not tabular, showing as text: %s (%s)", p, e)
        return _render_text(p)
    if not isinstance(df.index, pd.RangeIndex):
        logger.info("CSV rows wider than header, showing as text: %s", p)
        return _render_text(p)
    return df.to_html(index=False, border=0)

def _render_sheets(p: Path) -> str:
    engine = "openpyxl" if p.suffix.lower() == ".xlsx" else "xlrd"
    sheets = pd.read_excel(p, sheet_name=None, header=None, dtype=str, engine=engine)
    parts = []
    for name, df in sheets.items():
        parts.append(f"<h2>{escape(name)}</h2>")
        parts.append(df.fillna("").to_html(index=False, header=False, border=0))
    return "\n".join(parts) if parts else "<p>Empty workbook.</p>"

def _render_image(p: Path, path: str) -> str:
    return f'<img src="{escape(raw_url(path))}" alt="{escape(p.name)}">'

def _render_pdf(p: Path, path: str) -> str:
    return f'<embed src="{escape(raw_url(path))}" type="application/pdf" title="{escape(p.name)}">'


def render(p: Path, requested: str | None = None) -> str:
    """HTML page for file p. requested is the path as the client sent it.

    Raises UnsupportedFileType for anything outside VIEWABLE_EXTS; a damaged
    or unreadable file raises one of READ_ERRORS.
    """
    requested = requested or str(p)
    ext = p.suffix[1:].lower()
    if ext not in VIEWABLE_EXTS:
        raise UnsupportedFileType(ext or p.name)

    if ext == "txt":
        body = _render_text(p)
    elif ext == "csv":
        body = _render_csv(p)
    elif ext in SHEET_EXTS:
        body = _render_sheets(p)
    elif ext in IMAGE_EXTS:
        body = _render_image(p, requested)
    else:
        body = _render_pdf(p, requested)
    return PAGE.format(title=escape(p.name), body=body)
