"""
Console utilities and Rich formatting for PyMixPlanner.

Provides CLI output with the Rich library:
- Styled tables for analysis, similarity and set plans
- Status messages and panels
- Option/command groups for the --help screens
"""

from rich.box import ROUNDED
from rich.console import Console
from rich.panel import Panel
from rich.style import Style
from rich.table import Table
from rich.text import Text

from pymixplanner.audio import format_time
from pymixplanner.models import AnalysisResult, SetPlanResult, SimilarityScore, Track, TransitionPlan

# Module-level rich console instance
rich_console = Console()

# ============================================================================
# STYLES
# ============================================================================

STYLE_SUCCESS = Style(color="green", bold=True)
STYLE_ERROR = Style(color="red", bold=True)
STYLE_WARNING = Style(color="yellow")
STYLE_INFO = Style(color="cyan")
STYLE_DIM = Style(dim=True)
STYLE_HEADER = Style(color="bright_white", bold=True)
STYLE_SCORE_HIGH = Style(color="green", bold=True)
STYLE_SCORE_MED = Style(color="yellow")
STYLE_SCORE_LOW = Style(color="red")


# ============================================================================
# UI COMPONENTS
# ============================================================================

def print_header(title: str, subtitle: str = None):
    """Print a styled header."""
    header_text = Text(title, style=STYLE_HEADER)
    if subtitle:
        header_text.append(f"\n{subtitle}", style=STYLE_DIM)

    panel = Panel(
        header_text,
        box=ROUNDED,
        border_style="cyan",
        padding=(0, 2),
    )
    rich_console.print(panel)


def print_status(message: str, status: str = "info"):
    """Print a styled status message."""
    icons = {
        "success": ("✓", STYLE_SUCCESS),
        "error": ("✗", STYLE_ERROR),
        "warning": ("⚠", STYLE_WARNING),
        "info": ("•", STYLE_INFO),
    }
    icon, style = icons.get(status, ("•", STYLE_INFO))
    rich_console.print(f"[{style.color.name}]{icon}[/] {message}")


def score_to_style(score: float) -> Style:
    """Get appropriate style for a score value."""
    if score >= 0.75:
        return STYLE_SCORE_HIGH
    elif score >= 0.5:
        return STYLE_SCORE_MED
    else:
        return STYLE_SCORE_LOW


def format_score(score: float, width: int = 6) -> Text:
    """Format a score with appropriate coloring."""
    text = f"{score:.1%}".rjust(width)
    return Text(text, style=score_to_style(score))


def _fmt(value, spec: str, missing: str = "-") -> str:
    return missing if value is None else format(value, spec)


def track_label(track: Track | None, fallback: str) -> str:
    if track is None:
        return fallback[:12]
    return f"{track.artist} - {track.title}" if track.artist else track.title


def create_results_table(
    title: str,
    columns: list[tuple[str, str, str]],  # (name, style, justify)
) -> Table:
    """Create a styled results table."""
    table = Table(
        title=title,
        box=ROUNDED,
        header_style="bold cyan",
        border_style="dim",
        row_styles=["", "dim"],
    )

    for name, style, justify in columns:
        table.add_column(name, style=style, justify=justify)

    return table


def analysis_table(rows: list[tuple[Track, AnalysisResult]]) -> Table:
    table = create_results_table(
        f"Analyzed tracks ({len(rows)})",
        [
            ("Track", "white", "left"),
            ("Length", "green", "left"),
            ("BPM", "magenta", "right"),
            ("Key", "cyan", "center"),
            ("Energy", "yellow", "right"),
            ("LUFS", "blue", "right"),
            ("Sections", "white", "right"),
            ("Issues", "red", "left"),
        ],
    )
    for track, result in rows:
        table.add_row(
            track_label(track, result.track_id),
            format_time(result.duration),
            _fmt(result.bpm, ".1f"),
            result.key or "-",
            _fmt(result.energy_global, "d"),
            _fmt(result.integrated_loudness, ".1f"),
            "-" if result.sections is None else str(len(result.sections)),
            ", ".join(f"{e.stage.value}: {e.kind.value}" for e in result.stage_errors),
        )
    return table


def similarity_table(scores: list[SimilarityScore], tracks: dict[str, Track]) -> Table:
    table = create_results_table(
        "Most similar tracks",
        [
            ("#", "cyan", "right"),
            ("Track", "white", "left"),
            ("Score", "", "right"),
            ("Tempo", "magenta", "right"),
            ("Key", "cyan", "right"),
            ("Energy", "yellow", "right"),
            ("Vibe", "green", "right"),
            ("Why", "dim", "left"),
        ],
    )
    for idx, score in enumerate(scores):
        c = score.components
        table.add_row(
            str(idx),
            track_label(tracks.get(score.track_b_id), score.track_b_id),
            format_score(score.combined_score),
            f"{c.tempo:.2f}",
            f"{c.key:.2f}",
            f"{c.energy:.2f}",
            f"{c.embedding:.2f}",
            score.explanation,
        )
    return table


def mix_points_label(transition: TransitionPlan) -> str:
    """Mix-out and mix-in times; "?" marks a track without a tempo."""
    out = format_time(transition.mix_out.time_seconds) if transition.mix_out else "?"
    into = format_time(transition.mix_in.time_seconds) if transition.mix_in else "?"
    return f"out {out} / in {into}"


def set_plan_table(plan: SetPlanResult, tracks: dict[str, Track], results: dict[str, AnalysisResult]) -> Table:
    table = create_results_table(
        "Set order",
        [
            ("#", "cyan", "right"),
            ("Track", "white", "left"),
            ("BPM", "magenta", "right"),
            ("Key", "cyan", "center"),
            ("Energy", "yellow", "right"),
            ("Transition in", "", "right"),
            ("Mix", "green", "left"),
            ("Why", "dim", "left"),
        ],
    )
    for idx, track_id in enumerate(plan.ordered_tracks):
        result = results[track_id]
        transition = plan.transitions[idx - 1] if idx > 0 else None
        table.add_row(
            str(idx + 1),
            track_label(tracks.get(track_id), track_id),
            _fmt(result.bpm, ".1f"),
            result.key or "-",
            _fmt(result.energy_global, "d"),
            format_score(transition.score) if transition else Text("-"),
            mix_points_label(transition) if transition else "",
            transition.explanation if transition else "",
        )
    return table


def print_plan_summary(plan: SetPlanResult, mode_name: str):
    """Print set totals in a styled panel."""
    content = Text()
    content.append("Mode: ", style="dim")
    content.append(mode_name, style="cyan bold")
    content.append(" │ ", style="dim")
    content.append("Average transition: ", style="dim")
    content.append(f"{plan.average_transition_score:.1%}", style=score_to_style(plan.average_transition_score))
    content.append("\n")
    content.append("Energy flow: ", style="dim")
    content.append(" → ".join(str(e) for e in plan.energy_flow) or "-", style="yellow")

    rich_console.print(Panel(content, box=ROUNDED, border_style="green"))


# ============================================================================
# CLI HELP STYLING
# ============================================================================

# Creating groups for CLI --help styling
_basic_options = ["--path", "--recursive"]
_analysis_options = ["--workers", "--model"]
_export_options = ["--output-dir", "--export-json"]


def _option_groups(additional_basic_options=None, additional_options=None):
    combined_basic_options = _basic_options + (additional_basic_options or [])
    groups = [
        {
            "name": "Basic options",
            "options": combined_basic_options,
        },
        {
            "name": "Analysis options",
            "options": _analysis_options,
        },
        {
            "name": "Export options",
            "options": _export_options,
        },
    ]
    if additional_options:
        groups.insert(1, additional_options)
    return groups


_OPTION_GROUPS = {
    "pymixplanner analyze": _option_groups(),
    "pymixplanner similar": _option_groups(["--track", "--limit"]),
    "pymixplanner plan": _option_groups(
        additional_options={"name": "Set options", "options": ["--mode", "--start", "--end"]}
    ),
}

_COMMAND_GROUPS = {
    "pymixplanner": [
        {
            "name": "Analysis Commands",
            "commands": ["analyze"],
        },
        {
            "name": "Mixing Commands",
            "commands": ["similar", "plan"],
        },
    ]
}
