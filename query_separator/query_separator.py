from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import fields

from .audio_engine import SeparationConfig, SeparationEngine
from .errors import SeparationError
from .mixer import AudioMixer
from .system_utils import DEFAULT_PRESET, ConfigManager

LOG = logging.getLogger("query_separator")


def _setup_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """Configure console + optional file logging."""
    lvl = getattr(logging, str(level).upper(), logging.INFO)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="w", encoding="utf-8"))
    logging.basicConfig(
        level=lvl,
        format="%(asctime)s | %(levelname)-7s | %(message)s",
        handlers=handlers,
        force=True,
    )


class QuerySeparator:
    """Orchestrator binding presets to the separation engine."""

    def __init__(self, preset: str = DEFAULT_PRESET, presets_path: str | None = None, log_path: str | None = None):
        self.config_manager = ConfigManager(presets_path=presets_path)
        config = SeparationConfig(log_path=log_path)
        known = {f.name for f in fields(SeparationConfig)}
        for key, value in self.config_manager.get_preset(preset).items():
            if key in known:
                setattr(config, key, value)
            else:
                LOG.debug("Ignoring unknown preset key %r", key)
        self.engine = SeparationEngine(config)

    def run(self, input_path: str, query: str, out_dir: str, detected: list[str] | None = None):
        return self.engine.separate_file(
            input_path,
            query,
            out_dir,
            detected_labels=detected or [],
            progress=lambda pct: LOG.debug("Progress: %d%%", pct),
        )


def build_cli() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Extract sounds described by a text query from a mixed recording.")
    parser.add_argument("--in", dest="inp", help="Input audio path (wav/flac/ogg/mp3).")
    parser.add_argument("--query", help='Sounds to extract, e.g. "speech, dog barking".')
    parser.add_argument("--out_dir", default="separated", help="Folder for extracted WAV files and the report.")
    parser.add_argument(
        "--detected",
        action="append",
        default=[],
        help="Label from an external sound detector (repeatable).",
    )
    parser.add_argument("--preset", default=DEFAULT_PRESET, help="Preset name.")
    parser.add_argument("--presets_file", default=None, help="Optional JSON presets file.")
    parser.add_argument("--metrics_log", default=None, help="Append per-target metrics to this JSON file.")
    parser.add_argument(
        "--mix",
        nargs="+",
        default=None,
        metavar="PATH",
        help="Mix two or more recordings into <out_dir>/mixed_audio.wav instead of separating.",
    )
    parser.add_argument("--min_duration", type=float, default=3.0, help="Skip mix sources shorter than this (seconds).")
    parser.add_argument("--list_presets", action="store_true", help="Print preset names and exit.")
    parser.add_argument("--log_level", default="INFO", help="DEBUG, INFO, WARNING or ERROR.")
    parser.add_argument("--log_file", default=None, help="Optional log file.")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_cli().parse_args(argv)
    _setup_logging(args.log_level, args.log_file)

    if args.list_presets:
        for name in ConfigManager(presets_path=args.presets_file).list_presets():
            print(name)
        return 0

    if args.mix:
        try:
            mixed = AudioMixer(min_duration=args.min_duration).mix_files(args.mix, args.out_dir)
        except SeparationError as e:
            LOG.error("%s", e)
            return 2
        print(f"{mixed.output_path}: mixed {len(mixed.sources)} file(s), skipped {len(mixed.skipped)}")
        return 0

    if not args.inp or not args.query:
        raise SystemExit("--in and --query are required")

    try:
        separator = QuerySeparator(args.preset, presets_path=args.presets_file, log_path=args.metrics_log)
        results = separator.run(args.inp, args.query, args.out_dir, args.detected)
    except SeparationError as e:
        LOG.error("%s", e)
        return 2

    for result in results:
        print(f"{result.filename}: {result.description} (confidence {result.confidence:.0%})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
