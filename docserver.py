#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Document Period Grid — Web Service

- Scans each configured document set folder on every request
- /api/status returns the month x category grid as JSON
- /view renders a file, /file streams its bytes (both confined to the roots)
- Static single-page UI under /
- Requests are appended to the configured log file

"""

from __future__ import annotations
import argparse
import json
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from flask import Blueprint, Flask, jsonify, request, send_file, send_from_directory

import docviewer
from docgrid import GridConfig, ListingUnavailable, Policy, build_report
from docstore import AccessDenied, UnsupportedFileType, list_files, mime_of, resolve_within

logger = logging.getLogger(__name__)

PUBLIC_DIR = Path(__file__).parent / "public"
DEFAULT_CONFIG = "config.json"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class ConfigError(Exception):
    pass


# ---------- Settings ----------
@dataclass(frozen=True)
class DocumentSet:
    name: str
    label: str
    folder_path: str
    grid: GridConfig


@dataclass(frozen=True)
class Settings:
    document_sets: Tuple[DocumentSet, ...]
    host: str = "0.0.0.0"
    port: int = 3001
    base_path: str = ""
    log_file: Optional[str] = None

    def get_set(self, name: Optional[str]) -> Optional[DocumentSet]:
        if not name:
            return self.document_sets[0]
        return next((s for s in self.document_sets if s.name == name), None)

    @property
    def roots(self) -> List[str]:
        return [s.folder_path for s in self.document_sets]


def _parse_set(name: str, raw: Any) -> DocumentSet:
    if not isinstance(raw, Mapping):
        raise ConfigError(f"documentSets.{name} must be an object")
    folder = raw.get("folderPath")
    if not folder:
        raise ConfigError(f"documentSets.{name}.folderPath is required")
    try:
        grid = GridConfig.from_mapping(raw)
    except ValueError as e:
        raise ConfigError(f"documentSets.{name}: {e}") from e
    return DocumentSet(name=name, label=str(raw.get("label", name)), folder_path=str(folder), grid=grid)

def parse_settings(cfg: Mapping[str, Any]) -> Settings:
    """Settings from the decoded config.json object."""
    raw_sets = cfg.get("documentSets")
    if raw_sets is None and cfg.get("folderPath"):
        # Legacy single-folder layout: folderPath + dictionary
        legacy = {"folderPath": cfg["folderPath"], "label": "Main Files",
                  "policy": Policy.DICTIONARY.value if cfg.get("dictionary") else Policy.DYNAMIC.value,
                  "dictionary": cfg.get("dictionary"), "extensions": cfg.get("extensions")}
        raw_sets = {"main": legacy}
    if not isinstance(raw_sets, Mapping) or not raw_sets:
        raise ConfigError("Config needs 'documentSets' (or a legacy 'folderPath')")

    sets = tuple(_parse_set(str(k), v) for k, v in raw_sets.items())
    base = str(cfg.get("basePath", "") or "").rstrip("/")
    if base and not base.startswith("/"):
        base = "/" + base
    try:
        port = int(cfg.get("port", 3001))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid port: {cfg.get('port')!r}") from e
    return Settings(document_sets=sets, host=str(cfg.get("host", "0.0.0.0")), port=port,
                    base_path=base, log_file=cfg.get("logFile"))

def load_settings(path: str | Path) -> Settings:
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as f:
            cfg = json.load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read config {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e
    if not isinstance(cfg, Mapping):
        raise ConfigError(f"Config {path} must be a JSON object")
    return parse_settings(cfg)


# ---------- Logging ----------
def setup_logging(log_file: Optional[str] = None, level: int = logging.INFO) -> None:
    """Console logging, plus an append-only log file when configured."""
    logging.basicConfig(level=level, format=LOG_FORMAT)
    root = logging.getLogger()
    root.setLevel(level)
    if log_file:
        fmt = logging.Formatter(LOG_FORMAT)
        target = os.path.abspath(log_file)
        if not any(getattr(h, "baseFilename", None) == target for h in root.handlers):
            fh = logging.FileHandler(target, mode="a", encoding="utf-8")
            fh.setFormatter(fmt)
            root.addHandler(fh)


# ---------- Scan ----------
def scan(doc_set: DocumentSet) -> Dict[str, Any]:
    """Report for one document set as a JSON-ready dict."""
    listing = list_files(doc_set.folder_path)
    report = build_report(listing, doc_set.grid)
    for path in report.unmatched:
        logger.debug("No dictionary column for %s", path)
    logger.info("Scanned %s (%s): %d files, %d classified, %d unprocessed",
                doc_set.name, doc_set.folder_path, len(listing),
                len(listing) - len(report.unprocessed), len(report.unprocessed))
    return report.to_dict()


# ---------- Flask Web Service ----------
def create_blueprint(settings: Settings) -> Blueprint:
    bp = Blueprint("docgrid", __name__)

    @bp.route('/', methods=['GET'])
    def index():
        return send_from_directory(PUBLIC_DIR, "index.html")

    @bp.route('/static/<path:filename>', methods=['GET'])
    def assets(filename):
        return send_from_directory(PUBLIC_DIR, filename)

    @bp.route('/api/types', methods=['GET'])
    def types():
        return jsonify([{'key': s.name, 'label': s.label} for s in settings.document_sets])

    @bp.route('/api/status', methods=['GET'])
    def status():
        doc_set = settings.get_set(request.args.get('type'))
        if doc_set is None:
            return jsonify({'error': f"Unknown type: {request.args.get('type')}"}), 404
        try:
            return jsonify(scan(doc_set))
        except ListingUnavailable as e:
            logger.error("Listing unavailable for %s: %s", doc_set.name, e)
            return jsonify({'error': 'Failed to read folder'}), 500

    def _locate() -> Tuple[Optional[Path], Optional[Tuple[Any, int]]]:
        requested = request.args.get('file')
        if not requested:
            return None, (jsonify({'error': 'Missing file parameter'}), 400)
        try:
            return resolve_within(requested, settings.roots), None
        except AccessDenied:
            return None, (jsonify({'error': 'Access denied'}), 403)
        except FileNotFoundError:
            logger.info("Not found: %s", requested)
            return None, (jsonify({'error': 'File not found'}), 404)

    @bp.route('/view', methods=['GET'])
    def view():
        target, err = _locate()
        if err:
            return err
        try:
            html = docviewer.render(target, request.args.get('file'))
        except UnsupportedFileType as e:
            return jsonify({'error': f'Unsupported file type: {e}'}), 415
        except docviewer.READ_ERRORS as e:
            logger.exception("Cannot render %s", target)
            return jsonify({'error': f'Cannot read file: {e}'}), 500
        logger.info("Viewed %s", target)
        return html

    @bp.route('/file', methods=['GET'])
    def raw_file():
        target, err = _locate()
        if err:
            return err
        as_attachment = request.args.get('download') in ('1', 'true')
        logger.info("Served %s", target)
        return send_file(target, mimetype=mime_of(target), as_attachment=as_attachment,
                         download_name=target.name)

    @bp.route('/health', methods=['GET'])
    def health_check():
        return jsonify({'status': 'healthy', 'documentSets': [s.name for s in settings.document_sets]})

    return bp

def create_app(settings: Settings) -> Flask:
    app = Flask(__name__, static_folder=None)
    app.config['DOCGRID_SETTINGS'] = settings
    bp = create_blueprint(settings)
    app.register_blueprint(bp)
    if settings.base_path:
        app.register_blueprint(bp, url_prefix=settings.base_path, name="docgrid_prefixed")
    return app


# ---------- CLI ----------
def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Month x category completeness grid for a document folder.")
    p.add_argument("--config", type=str, help="JSON config (default: $DOCGRID_CONFIG or config.json).")
    p.add_argument("--host", type=str, help="Bind address (overrides config).")
    p.add_argument("--port", type=int, help="Port (overrides config).")
    p.add_argument("--scan", type=str, metavar="SET", help="Print one document set's report as JSON and exit.")
    return p.parse_args(argv)

def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    config_path = args.config or os.environ.get("DOCGRID_CONFIG") or DEFAULT_CONFIG
    try:
        settings = load_settings(config_path)
    except ConfigError as e:
        print(f"[ERR] {e}", file=sys.stderr)
        return 2
    setup_logging(settings.log_file)

    if args.scan:
        doc_set = settings.get_set(args.scan)
        if doc_set is None:
            print(f"[ERR] Unknown document set: {args.scan}", file=sys.stderr)
            return 2
        try:
            report = scan(doc_set)
        except ListingUnavailable as e:
            print(f"[ERR] {e}", file=sys.stderr)
            return 3
        json.dump(report, sys.stdout, indent=2, ensure_ascii=False)
        sys.stdout.write("\n")
        return 0

    app = create_app(settings)
    logger.info("Serving %d document set(s) on %s:%d%s", len(settings.document_sets),
                args.host or settings.host, args.port or settings.port, settings.base_path)
    app.run(host=args.host or settings.host, port=args.port or settings.port, debug=False)
    return 0

if __name__ == '__main__':
    raise SystemExit(main())
