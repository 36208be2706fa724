"""Operation-specific Rich renderers for ServiceResult.

Each renderer writes to a Rich Console (backed by StringIO). The caller
extracts the rendered text via ``get_output(console)``.

Renderers are dispatched by ``result.op`` in :func:`render_result`.
Unknown ops fall through to a generic key-value renderer.
"""

from __future__ import annotations

import json as _json
from typing import TYPE_CHECKING, Any

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from coachctl.output.console import create_console, get_output, style_for_gate

if TYPE_CHECKING:
    from rich.console import Console

    from coachctl.services.result import ServiceResult


# ── Public API ────────────────────────────────────────────────────────


def render_result(result: ServiceResult, *, verbose: bool = False) -> str:
    """Render a ServiceResult to a styled string via Rich.

    Returns plain text (no ANSI) when Rich detects no terminal,
    which is the case inside Click's CliRunner and piped output.
    """
    console = create_console()

    if result.ok:
        renderer = _OP_RENDERERS.get(result.op, _render_generic)
        renderer(result, console, verbose=verbose)
    else:
        _render_error(result, console, verbose=verbose)

    return get_output(console).rstrip("\n")


def render_quiet(result: ServiceResult) -> str:
    """Render minimal output for ``--quiet`` mode."""
    if not result.ok:
        msg = result.error.message if result.error else "Unknown error"
        return f"ERROR: {result.op}: {msg}"

    if result.op == "turn":
        return str(result.data.get("reply", ""))

    items = result.data.get("items")
    if items and isinstance(items, list):
        return "\n".join(str(item.get("id", "")) for item in items if isinstance(item, dict))

    return f"OK: {result.op}"


# ── Helpers ───────────────────────────────────────────────────────────


def _status_line(console: Console, result: ServiceResult) -> None:
    label = Text("OK", style="coach.ok")
    op = Text(f"  {result.op}", style="coach.op")
    console.print(label, op, sep="", end="")
    console.print()


def _field(console: Console, key: str, value: Any) -> None:
    """Print a single indented key-value field."""
    k = Text(f"  {key}: ", style="coach.key")
    if key == "id" or key.endswith("_id"):
        v = Text(str(value), style="coach.id")
    else:
        v = Text(str(value))
    console.print(k, v, sep="", end="")
    console.print()


def _render_meta(console: Console, result: ServiceResult) -> None:
    """Print meta block including telemetry span tree (verbose only)."""
    if not result.meta:
        return

    console.print()
    console.print(Text("  meta:", style="dim"))

    for k, v in result.meta.items():
        if k == "telemetry":
            _render_telemetry_tree(console, v, indent=4)
        else:
            console.print(f"    {k}: {v}")


def _render_telemetry_tree(
    console: Console,
    span_data: dict[str, Any],
    indent: int = 4,
) -> None:
    """Render a hierarchical span tree with color-coded timing."""
    prefix = " " * indent
    name = span_data.get("name", "?")
    duration = span_data.get("duration_ms", 0.0)

    if duration > 1000:
        style = "bold red"
    elif duration > 100:
        style = "yellow"
    else:
        style = "dim"

    line = f"{prefix}[{style}]{duration:>8.2f}ms[/{style}]  {name}"
    annotations = span_data.get("annotations") or {}
    if annotations:
        line += "  (" + ", ".join(f"{k}={v}" for k, v in annotations.items()) + ")"
    console.print(line)

    for child in span_data.get("children", []):
        _render_telemetry_tree(console, child, indent=indent + 4)


def _gate_line(console: Console, gate: dict[str, Any]) -> None:
    status = str(gate.get("status", ""))
    parts = [Text("  gate: ", style="coach.key"), Text(status, style=style_for_gate(status))]
    if gate.get("gate"):
        parts.append(Text(f" ({gate['gate']})", style="dim"))
    console.print(*parts, sep="", end="")
    console.print()
    if gate.get("reason"):
        _field(console, "reason", gate["reason"])


# ── Error renderer ────────────────────────────────────────────────────


def _render_error(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    err = result.error
    msg = err.message if err else "Unknown error"
    label = Text("ERROR", style="coach.error")
    op = Text(f"  {result.op}", style="coach.op")
    console.print(label, op, Text(": "), msg, sep="")

    if verbose and err and err.detail:
        console.print(Text("  detail:", style="dim"))
        for k, v in err.detail.items():
            console.print(f"    {k}: {v}")


# ── Turn renderers ────────────────────────────────────────────────────


def _render_turn(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Reply panel, gate outcome, and dispatch record."""
    d = result.data
    console.print(Panel(Text(str(d.get("reply", "")), style="coach.reply"), expand=False))
    _gate_line(console, d.get("gate") or {})

    dispatch = d.get("dispatch")
    if dispatch:
        summary = f"{dispatch['event_type']} {dispatch['status']}"
        if dispatch.get("target_id"):
            summary += f" -> {dispatch['target_id']}"
        _field(console, "dispatch", summary)
        if dispatch.get("detail"):
            _field(console, "detail", dispatch["detail"])
    elif d.get("event_type"):
        _field(console, "event", d["event_type"])

    if d.get("ack_required"):
        console.print(Text("  acknowledgment required", style="coach.warning"))
    if verbose:
        _field(console, "chunks", d.get("chunks", 0))
        _field(console, "session_id", d.get("session_id", ""))
        _render_meta(console, result)


def _render_prompt(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    d = result.data
    console.print(Panel(str(d.get("system_prompt", "")), title="system", expand=False))
    console.print(Panel(str(d.get("user_message", "")), title="user", expand=False))
    _field(console, "chunks", len(d.get("chunks", [])))
    if verbose:
        _render_meta(console, result)


def _render_parse(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    envelope = result.data.get("envelope", {})
    _field(console, "reply", envelope.get("reply", ""))
    event = envelope.get("event")
    if event:
        _field(console, "event", _json.dumps(event, separators=(",", ":")))
    for key in ("validation", "directnessCheck", "guardrail"):
        if envelope.get(key) is not None:
            _field(console, key, _json.dumps(envelope[key], separators=(",", ":")))
    _gate_line(console, result.data.get("gate") or {})


# ── Listing renderers ─────────────────────────────────────────────────


def _render_audit(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    items = result.data.get("items", [])
    if not items:
        console.print(Text("No audit entries.", style="dim"))
        return

    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    table.add_column("ID", style="coach.id", justify="right")
    table.add_column("Timestamp", style="dim")
    table.add_column("Session")
    table.add_column("Event")
    table.add_column("Aggregate")
    table.add_column("Target", style="coach.id")
    if verbose:
        table.add_column("Payload")

    for item in items:
        row = [
            str(item.get("id", "")),
            str(item.get("timestamp", "")),
            str(item.get("session_id", "")),
            str(item.get("event_type", "")),
            str(item.get("aggregate", "")),
            str(item.get("target_id") or ""),
        ]
        if verbose:
            row.append(_json.dumps(item.get("payload", {}), separators=(",", ":")))
        table.add_row(*row)
    console.print(table)


def _render_doctrine(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    d = result.data
    _status_line(console, result)
    _field(console, "name", f"{d['name']} v{d['version']}")
    _field(console, "model", d["model"])
    _field(console, "role", d["role"])
    _field(console, "tone", d["tone"])
    _field(console, "guardrails", ", ".join(d["guardrails"]))
    _field(console, "event_types", len(d["event_types"]))
    retrieval = f"max {d['max_chunks']}" if d["retrieval_enabled"] else "disabled"
    _field(console, "chunks", f"{d['chunk_count']} ({retrieval})")
    if verbose:
        for event_type in d["event_types"]:
            console.print(f"    {event_type}")
        _field(console, "protocol_notes", ", ".join(d.get("protocol_notes", [])))


# ── Generic fallback ──────────────────────────────────────────────────


def _render_generic(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Fallback renderer: status line + all data as key-value pairs."""
    _status_line(console, result)
    for key, value in result.data.items():
        if isinstance(value, (dict, list)):
            _field(console, key, _json.dumps(value, separators=(",", ":")))
        else:
            _field(console, key, value)
    if verbose:
        _render_meta(console, result)


# ── Dispatch table ────────────────────────────────────────────────────

_OP_RENDERERS: dict[str, Any] = {
    "turn": _render_turn,
    "prompt": _render_prompt,
    "parse": _render_parse,
    "audit": _render_audit,
    "doctrine": _render_doctrine,
}
