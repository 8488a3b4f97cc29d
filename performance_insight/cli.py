"""Command-line interface for Performance Insight.

Provides commands for:
- analyze: Replay a MIDI file through the live analysis pipeline
- chord: Identify the chord formed by a set of MIDI pitches
"""

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .core import map_note, note_display_name

app = typer.Typer(
    name="performance-insight",
    help="Live MIDI performance analysis",
    rich_markup_mode="markdown",
)
console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


@app.command()
def analyze(
    input_file: Path = typer.Argument(..., help="Input MIDI file (.mid, .midi)"),
    instrument: Optional[int] = typer.Option(
        None, "--instrument", "-i", help="Only analyze the instrument at this index"
    ),
    json_output: bool = typer.Option(
        False, "--json", help="Output results as JSON (for scripting)"
    ),
    verbose: bool = typer.Option(
        False, "-v", "--verbose", help="Verbose output"
    ),
):
    """Replay a MIDI performance and report timing, harmony and style.

    Examples:
        performance-insight analyze take1.mid
        performance-insight analyze take1.mid --instrument 0 --json
    """
    from .input import MidiLoader
    from .session import AnalysisPipeline

    _configure_logging(verbose)

    loader = MidiLoader(instrument=instrument)
    try:
        events = loader.load(str(input_file))
    except FileNotFoundError:
        console.print(f"[red]Error: File not found: {input_file}[/red]")
        raise typer.Exit(1)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if not events:
        console.print("[yellow]No notes found![/yellow]")
        return

    pipeline = AnalysisPipeline()
    chords = []
    for event in events:
        if event.is_note_on:
            update = pipeline.note_on(event.pitch, event.velocity, event.timestamp)
            if update is not None and update.chord is not None:
                chords.append(update)
        else:
            pipeline.note_off(event.pitch, event.timestamp)
    closed = pipeline.flush()
    if closed is not None:
        chords.append(closed)
    report = pipeline.analyze_patterns()

    if json_output:
        console.print_json(data=report.to_dict())
        return

    console.print(f"\n[bold blue]Performance Analysis: {input_file.name}[/bold blue]\n")
    console.print(f"   Notes: {report.total_notes}   Chords: {report.total_chords}")

    console.print("\n[cyan]Timing[/cyan]")
    if report.tempo is None:
        console.print("   [yellow]No steady tempo detected[/yellow]")
    else:
        console.print(f"   [green]Tempo: {report.tempo:.1f} BPM[/green]")
        console.print(f"   Accuracy: {report.accuracy}%")
        if report.flow is not None:
            state = "in flow" if report.flow.is_in_flow else "not in flow"
            console.print(f"   Flow: {state} ({report.flow.rolling_accuracy:.0%} over last 30s)")
        if len(report.tempo_history) > 1:
            _show_tempo_table(report.tempo_history)

    console.print("\n[cyan]Harmony[/cyan]")
    if report.key is None:
        console.print("   [yellow]No clear key[/yellow]")
    else:
        console.print(f"   [green]Key: {report.key.name}[/green]")
        console.print(f"   Confidence: {report.key.confidence:.2f}")
        if len(report.key_history) > 1:
            keys = " -> ".join(s.key.name for s in report.key_history)
            console.print(f"   Modulations: {keys}")

    if chords:
        _show_chords_table(chords[:20])
        if len(chords) > 20:
            console.print(f"   [dim]... and {len(chords) - 20} more chords[/dim]")

    console.print("\n[cyan]Style[/cyan]")
    if report.genres:
        _show_genres_table(report.genres)
    else:
        console.print("   [dim]Not enough material for genre detection[/dim]")

    if report.tendencies is not None:
        rhythm = report.tendencies.rhythm_profile
        console.print(f"   Swing ratio: {rhythm.swing_ratio:.2f}")
        console.print(f"   Density: {rhythm.average_density:.2f} notes/s")
        if rhythm.common_subdivisions:
            console.print(f"   Subdivisions: {', '.join(rhythm.common_subdivisions)}")

    if not report.avoidance.is_empty:
        _show_avoidance(report.avoidance)

    console.print("\n[green][OK] Analysis complete![/green]")


@app.command()
def chord(
    pitches: List[int] = typer.Argument(..., help="MIDI pitch numbers (0-127)"),
):
    """Identify the chord formed by simultaneous MIDI pitches.

    Example:
        performance-insight chord 60 64 67
    """
    from .inference import analyze_chord

    invalid = [p for p in pitches if not 0 <= p <= 127]
    if invalid:
        console.print(f"[red]Error: Pitches out of range 0-127: {invalid}[/red]")
        raise typer.Exit(1)

    notes = [map_note(pitch, 100, 0.0) for pitch in pitches]
    result = analyze_chord(notes)
    names = " ".join(note_display_name(p) for p in pitches)

    if result is None:
        console.print(f"[yellow]No chord: {names}[/yellow]")
        return

    console.print(f"[green]{result.display_name}[/green] ({result.root} {result.quality.value}) from {names}")


def _show_tempo_table(segments):
    """Display tempo segments in a table."""
    table = Table(title="Tempo Segments")
    table.add_column("BPM", style="cyan")
    table.add_column("Time (s)", style="yellow")
    table.add_column("Notes", style="magenta")

    for segment in segments:
        table.add_row(
            f"{segment.bpm:.1f}",
            f"{segment.start_timestamp / 1000:.2f}-{segment.end_timestamp / 1000:.2f}",
            str(segment.note_count),
        )

    console.print(table)


def _show_chords_table(updates):
    """Display detected chords (PipelineUpdate or ChordUpdate rows) in a table."""
    table = Table(title="Detected Chords")
    table.add_column("Chord", style="cyan")
    table.add_column("Roman", style="green")
    table.add_column("Time (s)", style="yellow")
    table.add_column("Key", style="magenta")

    for update in updates:
        function = update.harmonic_function
        table.add_row(
            update.chord.display_name,
            function.roman_numeral if function else "-",
            f"{update.chord.timestamp / 1000:.2f}",
            update.key.name if update.key else "-",
        )

    console.print(table)


def _show_genres_table(genres):
    """Display genre matches in a table."""
    table = Table(title="Genre Patterns")
    table.add_column("Genre", style="cyan")
    table.add_column("Confidence", style="green")
    table.add_column("Matched", style="yellow")

    for pattern in genres:
        table.add_row(
            pattern.genre,
            f"{pattern.confidence:.2f}",
            ", ".join(pattern.matched_patterns),
        )

    console.print(table)


def _show_avoidance(avoidance):
    """Display avoidance patterns."""
    console.print("\n[cyan]Avoided[/cyan]")
    if avoidance.avoided_keys:
        console.print(f"   Pitch classes: {', '.join(avoidance.avoided_keys)}")
    if avoidance.avoided_chord_types:
        console.print(f"   Chord types: {', '.join(avoidance.avoided_chord_types)}")
    if avoidance.avoided_tempo_ranges:
        ranges = ", ".join(f"{r.min_bpm}-{r.max_bpm}" for r in avoidance.avoided_tempo_ranges)
        console.print(f"   Tempo ranges (BPM): {ranges}")
    if avoidance.avoided_intervals:
        console.print(f"   Intervals (semitones): {', '.join(str(i) for i in avoidance.avoided_intervals)}")


def main():
    """Entry point."""
    app()


if __name__ == "__main__":
    main()
