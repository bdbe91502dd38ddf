from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from traceviz import __version__
from traceviz.config import Config, ConfigError, load_config
from traceviz.diagrams.trace_view import TraceView
from traceviz.errors import ErrorCode, handle_exception, is_verbose, make_error, set_verbose
from traceviz.prefs import JsonFilePreferenceStore
from traceviz.trace.critical_path import critical_chain
from traceviz.trace.ingest import (
    SpanValidationError,
    TraceNotFoundError,
    load_spans,
    read_records,
    validate_records,
)
from traceviz.trace.span_model import Span
from traceviz.trace.stats import duration_percentiles, format_duration, service_breakdown


def _config_from_args(args: argparse.Namespace) -> Config:
    return load_config(
        env_file=getattr(args, "env_file", None),
        cli_overrides={
            "container_width": getattr(args, "width", None),
            "color_by": getattr(args, "color_by", None),
            "child_order": getattr(args, "child_order", None),
        },
    )


def _load_view(args: argparse.Namespace, config: Config) -> TraceView:
    """Load spans from --spans into a fresh TraceView."""
    spans = load_spans(Path(args.spans), trace_id=getattr(args, "trace_id", None))
    if not spans and getattr(args, "trace_id", None):
        raise TraceNotFoundError(args.trace_id)

    view = TraceView(
        container_width=config.container_width,
        child_order=config.child_order,
        prefs=JsonFilePreferenceStore(config.prefs_file),
        color_by=config.color_by,
    )
    view.load(spans)
    return view


def _emit_json(data: Any, out: Optional[str]) -> None:
    text = json.dumps(data, indent=2)
    if out:
        out_path = Path(out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(text + "\n", encoding="utf-8")
        print(f"Wrote {out_path}")
    else:
        print(text)


def _span_brief(span: Span) -> dict[str, Any]:
    return {
        "span_id": span.span_id,
        "name": span.name,
        "service_name": span.service_name,
        "duration_ms": span.duration_ms,
        "status": span.status.value,
    }


def _cmd_summary(args: argparse.Namespace) -> int:
    """Print totals, critical path and per-service breakdown."""
    config = _config_from_args(args)
    view = _load_view(args, config)
    trace = view.trace

    chains = [[n.span for n in critical_chain(root)] for root in view.tree.roots]
    breakdown = service_breakdown(trace)
    pct = duration_percentiles(trace)

    if args.json:
        _emit_json(
            {
                "trace_id": trace.trace_id,
                "total_duration_ms": trace.total_duration_ms,
                "span_count": trace.span_count,
                "roots": [r.span_id for r in view.tree.roots],
                "max_depth": view.tree.max_depth,
                "critical_paths": [[_span_brief(s) for s in chain] for chain in chains],
                "services": [
                    {
                        "name": s.name,
                        "color": s.color,
                        "span_count": s.span_count,
                        "total_duration_ms": s.total_duration_ms,
                        "error_count": s.error_count,
                        "percentage": round(s.percentage, 2),
                    }
                    for s in breakdown
                ],
                "percentiles": {"p50": pct.p50, "p95": pct.p95, "p99": pct.p99, "max": pct.max},
            },
            args.out,
        )
        return 0

    if view.is_empty:
        print("No spans to display.")
        return 0

    print(f"Trace: {trace.trace_id or '(unknown)'}")
    print(f"  Spans: {trace.span_count}   Duration: {format_duration(trace.total_duration_ms)}")
    print(f"  Roots: {len(view.tree.roots)}   Depth: {view.tree.max_depth + 1}")
    print()
    print("Critical path:")
    for chain in chains:
        for i, span in enumerate(chain):
            print(f"  {'  ' * i}{span.name} ({format_duration(span.duration_ms)})")
    print()
    print("Services:")
    for s in breakdown:
        errors = f", {s.error_count} errors" if s.error_count else ""
        print(f"  {s.name:<24} {s.span_count:>4} spans  {format_duration(s.total_duration_ms):>10}  {s.percentage:5.1f}%{errors}")
    print()
    print(
        f"Latency: p50 {format_duration(pct.p50)}  p95 {format_duration(pct.p95)}  "
        f"p99 {format_duration(pct.p99)}  max {format_duration(pct.max)}"
    )
    return 0


def _apply_viewport_args(view: TraceView, args: argparse.Namespace) -> None:
    if args.zoom is not None:
        view.viewport.set_zoom(args.zoom)
    if args.pan is not None:
        view.viewport.set_pan(args.pan)


def _cmd_flame(args: argparse.Namespace) -> int:
    """Emit projected flame rectangles for a viewport as JSON."""
    config = _config_from_args(args)
    view = _load_view(args, config)
    _apply_viewport_args(view, args)

    state = view.viewport.state
    minimap = view.viewport.minimap()
    _emit_json(
        {
            "zoom_level": state.zoom_level,
            "pan_offset": state.pan_offset,
            "container_width": state.container_width,
            "height": view.flame.height,
            "rects": [
                {**r.to_dict(), "color": view.flame.fill_color(r.flame_node, state)}
                for r in view.flame_rects()
            ],
            "ruler": [{"x": t.x, "label": t.label} for t in view.flame.ruler(state)],
            "minimap": {
                "shown": minimap.shown,
                "visible_fraction": minimap.visible_fraction,
                "offset_fraction": minimap.offset_fraction,
            },
        },
        args.out,
    )
    return 0


def _cmd_waterfall(args: argparse.Namespace) -> int:
    """Emit visible waterfall rows as JSON."""
    config = _config_from_args(args)
    view = _load_view(args, config)

    if args.collapse_all:
        view.waterfall.collapse_all()
    for span_id in args.collapse or []:
        if span_id in view.waterfall.expanded_ids:
            view.waterfall.toggle(span_id)
    view.waterfall.set_show_critical_path(args.critical_path)

    _emit_json(
        {
            "summary": view.waterfall.summary(),
            "span_column_width": view.waterfall.column.width,
            "ruler": [{"percent": m.percent, "label": m.label} for m in view.waterfall.ruler_marks()],
            "rows": [r.to_dict() for r in view.waterfall_rows()],
        },
        args.out,
    )
    return 0


def _cmd_hit(args: argparse.Namespace) -> int:
    """Report the span under a point in the flame view."""
    config = _config_from_args(args)
    view = _load_view(args, config)
    _apply_viewport_args(view, args)

    found = view.pointer_move(args.x, args.y)
    if found is None:
        print("No span at that point.")
        return 0
    _emit_json(view.tooltip(), None)
    return 0


def _cmd_validate(args: argparse.Namespace) -> int:
    """Validate a spans file against the span schema."""
    path = Path(args.spans)
    records = read_records(path)
    errors = validate_records(records)
    if errors:
        make_error(ErrorCode.E102).print()
        for error in errors:
            print(f"  {error}", file=sys.stderr)
        return 1
    print(f"✅ {len(records)} span records valid: {path}")
    return 0


def _cmd_show_config(args: argparse.Namespace) -> int:
    """Show effective configuration from all sources."""
    config = _config_from_args(args)

    print("traceviz Effective Configuration")
    print("=" * 50)
    print()
    if config.env_file_path:
        print(f"Env File: {config.env_file_path}")
    else:
        print("Env File: none loaded")
    print()
    for key, value in config.to_dict().items():
        if key == "env_file_path":
            continue
        print(f"  {key}: {value}")
    return 0


def _add_spans_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--spans", required=True, help="Path to a JSON, JSONL or YAML spans file")
    p.add_argument("--trace-id", default=None, help="Only use spans from this trace")
    p.add_argument("--env-file", default=None, help="Path to a .env file")
    p.add_argument(
        "--child-order",
        choices=["start_time", "input"],
        default=None,
        help="Order children by start time (default) or input order",
    )


def _add_viewport_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--width", type=float, default=None, help="Container width in pixels")
    p.add_argument("--zoom", type=float, default=None, help="Zoom level (1-20)")
    p.add_argument("--pan", type=float, default=None, help="Pan offset in pixels")
    p.add_argument("--color-by", choices=["status", "service"], default=None)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="traceviz",
        description="Trace visualization engine: span trees, critical paths, flame and waterfall layouts",
    )
    p.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Debug logging and full tracebacks on errors",
    )
    p.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    p_sum = sub.add_parser("summary", help="Trace totals, critical path and service breakdown")
    _add_spans_args(p_sum)
    p_sum.add_argument("--json", action="store_true", help="Emit JSON instead of text")
    p_sum.add_argument("--out", default=None, help="Write JSON output to this file")
    p_sum.set_defaults(func=_cmd_summary)

    p_flame = sub.add_parser("flame", help="Projected flame-graph rectangles as JSON")
    _add_spans_args(p_flame)
    _add_viewport_args(p_flame)
    p_flame.add_argument("--out", default=None, help="Write JSON output to this file")
    p_flame.set_defaults(func=_cmd_flame)

    p_wf = sub.add_parser("waterfall", help="Visible waterfall rows as JSON")
    _add_spans_args(p_wf)
    p_wf.add_argument("--collapse", action="append", metavar="SPAN_ID", help="Collapse a span (repeatable)")
    p_wf.add_argument("--collapse-all", action="store_true", help="Collapse every span")
    p_wf.add_argument("--critical-path", action="store_true", help="Flag critical-path rows")
    p_wf.add_argument("--out", default=None, help="Write JSON output to this file")
    p_wf.set_defaults(func=_cmd_waterfall)

    p_hit = sub.add_parser("hit", help="Which span is under a point in the flame view")
    _add_spans_args(p_hit)
    _add_viewport_args(p_hit)
    p_hit.add_argument("--x", type=float, required=True)
    p_hit.add_argument("--y", type=float, required=True)
    p_hit.set_defaults(func=_cmd_hit)

    p_val = sub.add_parser("validate", help="Validate a spans file against the span schema")
    p_val.add_argument("--spans", required=True, help="Path to a spans file")
    p_val.set_defaults(func=_cmd_validate)

    p_cfg = sub.add_parser("show-config", help="Show effective configuration")
    p_cfg.add_argument("--env-file", default=None, help="Path to a .env file")
    p_cfg.set_defaults(func=_cmd_show_config)

    return p


def main(argv: Optional[list[str]] = None) -> None:
    p = build_parser()
    args = p.parse_args(argv)

    set_verbose(args.verbose)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        rc = args.func(args)
        raise SystemExit(rc)
    except SystemExit:
        raise
    except KeyboardInterrupt:
        print("\n⚠️  Interrupted by user", file=sys.stderr)
        raise SystemExit(130)
    except FileNotFoundError as e:
        handle_exception(e, ErrorCode.E100, str(e).splitlines()[0])
        raise SystemExit(1)
    except TraceNotFoundError as e:
        handle_exception(e, ErrorCode.E103, str(e))
        raise SystemExit(1)
    except ConfigError as e:
        handle_exception(e, ErrorCode.E001, str(e))
        raise SystemExit(1)
    except SpanValidationError as e:
        handle_exception(e, ErrorCode.E102, str(e))
        raise SystemExit(1)
    except ValueError as e:
        handle_exception(e, ErrorCode.E101, str(e))
        raise SystemExit(1)
    except OSError as e:
        handle_exception(e, ErrorCode.E300, str(e))
        raise SystemExit(1)
    except Exception as e:
        if is_verbose():
            import traceback
            traceback.print_exc()
        else:
            print(f"Error: {e}", file=sys.stderr)
            print("Run with --verbose for full traceback", file=sys.stderr)
        raise SystemExit(1)
