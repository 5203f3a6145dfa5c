# -*- coding: utf-8 -*-

"""
Document period grid — classification and aggregation core

- File names follow YYYYMM_Category.ext
- Builds a gap-free month axis from the earliest to the latest period
- Aggregates files into a dense month x category grid
- Files that break the convention are listed separately, never dropped

Pure functions only: the caller supplies the file listing and the config.
"""

from __future__ import annotations
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple

# ---------- Constants & regex ----------
NAME_RE  = re.compile(r"^(\d{6})_([^.]+)(\.[^.]+)$")
BADGE_RE = re.compile(r"\d+-\d+")
SEP_RE   = re.compile(r"[\\/]")

DEFAULT_EXTENSIONS: FrozenSet[str] = frozenset({
    "txt", "csv", "pdf", "png", "jpg", "jpeg", "bmp", "xls", "xlsx"
})

# Row objects carry the period under this key, so no column may use it
RESERVED_KEY = "month"


class Policy(str, Enum):
    DYNAMIC = "dynamic"
    DICTIONARY = "dictionary"


class ListingUnavailable(Exception):
    """The file listing could not be obtained (as opposed to being empty)."""


# ---------- Model ----------
@dataclass(frozen=True)
class GridConfig:
    policy: Policy = Policy.DYNAMIC
    dictionary: Tuple[Tuple[str, str], ...] = ()
    allowed_extensions: FrozenSet[str] = DEFAULT_EXTENSIONS

    @classmethod
    def from_mapping(cls, raw: Mapping) -> "GridConfig":
        """Build a config from its JSON form. Raises ValueError on bad values."""
        policy = Policy(str(raw.get("policy", Policy.DYNAMIC.value)).lower())
        dictionary = raw.get("dictionary") or {}
        if not isinstance(dictionary, Mapping):
            raise ValueError("'dictionary' must be an object of key -> label")
        pairs = tuple((str(k), str(v)) for k, v in dictionary.items())
        if policy is Policy.DICTIONARY and not pairs:
            raise ValueError("dictionary policy needs a non-empty 'dictionary'")
        if any(k == RESERVED_KEY or not k for k, _ in pairs):
            raise ValueError(f"dictionary keys must be non-empty and not '{RESERVED_KEY}'")
        exts = raw.get("extensions")
        if exts is not None and not isinstance(exts, (list, tuple)):
            raise ValueError("'extensions' must be a list of extensions")
        allowed = (frozenset(str(e).lower().lstrip(".") for e in exts)
                   if exts else DEFAULT_EXTENSIONS)
        return cls(policy=policy, dictionary=pairs, allowed_extensions=allowed)


@dataclass(frozen=True)
class ClassifiedFile:
    period: str
    category: str
    extension: str     # lowercased, with leading dot
    source_path: str

    @property
    def name(self) -> str:
        return base_name(self.source_path)


@dataclass(frozen=True)
class Column:
    key: str
    label: str


@dataclass(frozen=True)
class Cell:
    files: Tuple[str, ...] = ()

    @property
    def count(self) -> int:
        return len(self.files)

    @property
    def exts(self) -> List[str]:
        return [extension_of(p) for p in self.files]

    @property
    def state(self) -> str:
        if not self.files: return "missing"
        return "ok" if len(self.files) == 1 else "duplicate"

    @property
    def badge(self) -> Optional[str]:
        """Badge of the single file in an ok cell; None otherwise."""
        if len(self.files) != 1:
            return None
        return extract_badge(self.files[0])

    def to_dict(self) -> Dict:
        return {"count": self.count, "paths": list(self.files), "exts": self.exts,
                "state": self.state, "badge": self.badge}


@dataclass(frozen=True)
class Report:
    months: Tuple[str, ...] = ()
    columns: Tuple[Column, ...] = ()
    grid: Tuple[Tuple[Cell, ...], ...] = ()   # grid[i][j] -> months[i] x columns[j]
    unprocessed: Tuple[str, ...] = ()
    # classified but in no column (dictionary policy); not serialized
    unmatched: Tuple[str, ...] = field(default=(), compare=False)

    def cell(self, month: str, key: str) -> Cell:
        i = self.months.index(month)
        j = [c.key for c in self.columns].index(key)
        return self.grid[i][j]

    def counts(self, key: str) -> List[int]:
        j = [c.key for c in self.columns].index(key)
        return [row[j].count for row in self.grid]

    def to_dict(self) -> Dict:
        rows = []
        for month, cells in zip(self.months, self.grid):
            row: Dict = {"month": month}
            for col, cell in zip(self.columns, cells):
                row[col.key] = cell.to_dict()
            rows.append(row)
        return {
            "months": list(self.months),
            "columns": [{"key": c.key, "label": c.label} for c in self.columns],
            "grid": rows,
            "unprocessedFiles": list(self.unprocessed),
        }


# ---------- Helpers ----------
def base_name(path: str) -> str:
    return SEP_RE.split(path)[-1]

def extension_of(path: str) -> str:
    name = base_name(path)
    dot = name.rfind(".")
    return name[dot:].lower() if dot != -1 else ""

def is_calendar_period(period: str) -> bool:
    return len(period) == 6 and period.isdigit() and 1 <= int(period[4:]) <= 12


# ---------- Classifier ----------
def classify(path: str, allowed_extensions: Iterable[str] = DEFAULT_EXTENSIONS) -> Optional[ClassifiedFile]:
    """Classify one file. Returns None when the name is unclassifiable.

    Never raises: a name that does not match, an extension outside the allowed
    set, or the reserved category key all yield None.
    """
    name = base_name(path)
    m = NAME_RE.match(name)
    if not m:
        return None
    period, category, ext = m.groups()
    ext = ext.lower()
    if ext[1:] not in allowed_extensions:
        return None
    if category == RESERVED_KEY:
        return None
    return ClassifiedFile(period=period, category=category, extension=ext, source_path=path)

def extract_badge(name: str) -> Optional[str]:
    """Last N-M pair of the category segment, formatted 'N,M' for display."""
    name = base_name(name)
    dot, us = name.rfind("."), name.rfind("_")
    if dot == -1 or us == -1 or dot <= us + 1:
        return None
    found = BADGE_RE.findall(name[us + 1:dot])
    if not found:
        return None
    return found[-1].replace("-", ",")


# ---------- Period axis ----------
def month_range(start: str, end: str) -> List[str]:
    """Every month from start to end inclusive. Empty when start > end."""
    for p in (start, end):
        if not is_calendar_period(p):
            raise ValueError(f"Not a calendar period: {p!r}")
    year, month = int(start[:4]), int(start[4:])
    end_year, end_month = int(end[:4]), int(end[4:])
    out: List[str] = []
    while (year, month) <= (end_year, end_month):
        out.append(f"{year:04d}{month:02d}")
        month += 1
        if month > 12:
            month = 1
            year += 1
    return out

def build_axis(periods: Iterable[str]) -> List[str]:
    """Gap-free ascending axis spanning the calendar-legal observed periods."""
    valid = sorted({p for p in periods if is_calendar_period(p)})
    if not valid:
        return []
    return month_range(valid[0], valid[-1])


# ---------- Aggregator ----------
def resolve_columns(files: Sequence[ClassifiedFile], config: GridConfig) -> List[Column]:
    if config.policy is Policy.DICTIONARY:
        return [Column(k, v) for k, v in config.dictionary]
    return [Column(k, k) for k in sorted({f.category for f in files})]

def matches(f: ClassifiedFile, col: Column, policy: Policy) -> bool:
    if policy is Policy.DICTIONARY:
        return col.key in f.name
    return f.category == col.key

def aggregate(axis: Sequence[str], columns: Sequence[Column],
              files: Sequence[ClassifiedFile], policy: Policy) -> List[List[Cell]]:
    """Dense grid: one Cell per (period, column), paths kept in scan order.

    Under the dictionary policy a file may land in several columns of its row.
    """
    by_period: Dict[str, List[ClassifiedFile]] = {}
    for f in files:
        by_period.setdefault(f.period, []).append(f)

    grid: List[List[Cell]] = []
    for period in axis:
        bucket = by_period.get(period, [])
        grid.append([
            Cell(tuple(f.source_path for f in bucket if matches(f, col, policy)))
            for col in columns
        ])
    return grid

def unmatched(files: Sequence[ClassifiedFile], columns: Sequence[Column], policy: Policy) -> List[str]:
    return [f.source_path for f in files
            if not any(matches(f, c, policy) for c in columns)]


# ---------- Report ----------
def assemble_report(axis: Sequence[str], columns: Sequence[Column],
                    grid: Sequence[Sequence[Cell]], unprocessed: Sequence[str],
                    unmatched_paths: Sequence[str] = ()) -> Report:
    return Report(
        months=tuple(axis),
        columns=tuple(columns),
        grid=tuple(tuple(row) for row in grid),
        unprocessed=tuple(unprocessed),
        unmatched=tuple(unmatched_paths),
    )

def build_report(listing: Optional[Sequence[str]], config: GridConfig) -> Report:
    """Run the whole pipeline on one listing snapshot.

    None means no listing could be obtained and raises ListingUnavailable;
    an empty list gives an empty Report.
    """
    if listing is None:
        raise ListingUnavailable("No file listing available")

    classified: List[ClassifiedFile] = []
    unprocessed: List[str] = []
    for path in listing:
        f = classify(path, config.allowed_extensions)
        # Illegal months (e.g. 202413) cannot sit on the axis
        if f is None or not is_calendar_period(f.period):
            unprocessed.append(path)
        else:
            classified.append(f)

    axis = build_axis(f.period for f in classified)
    columns = resolve_columns(classified, config)
    grid = aggregate(axis, columns, classified, config.policy)
    return assemble_report(axis, columns, grid, unprocessed,
                           unmatched(classified, columns, config.policy))
