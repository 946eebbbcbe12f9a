from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from rich.progress import MofNCompleteColumn, Progress, SpinnerColumn, TimeElapsedColumn

from pymixplanner.analysis import StageUpdate, import_model_factory
from pymixplanner.console import (
    analysis_table,
    print_header,
    print_plan_summary,
    print_status,
    rich_console,
    set_plan_table,
    similarity_table,
)
from pymixplanner.core import MixPlanner
from pymixplanner.models import AnalysisResult, Track
from pymixplanner.planner import SetMode
from pymixplanner.utils import compute_content_hash, find_audio_files, mk_outputdir


def build_planner(model: str | None = None, workers: int | None = None) -> MixPlanner:
    loader = import_model_factory(model) if model else None
    if loader is None:
        logging.info("No embedding model configured; embeddings will be skipped.")
    return MixPlanner(model_loader=loader, max_workers=workers)


def collect_files(path: str, recursive: bool = False) -> list[str]:
    if os.path.isfile(path):
        return [os.path.abspath(path)]
    files = find_audio_files(os.path.abspath(path), recursive=recursive)
    if len(files) == 0:
        raise FileNotFoundError(f'No audio files found in "{path}"')
    return files


class AnalysisHandler:
    """Analyzes one file or a directory of files with a progress display."""

    def __init__(
        self,
        *,
        path: str,
        recursive: bool = False,
        workers: int | None = None,
        model: str | None = None,
        output_dir: str | None = None,
        planner: MixPlanner | None = None,
        **kwargs,
    ):
        self.path = path
        self.files = collect_files(path, recursive)
        self.output_dir = output_dir
        self.planner = planner or build_planner(model, workers)
        self.rows: list[tuple[Track, AnalysisResult]] = []

    def analyze(self) -> list[tuple[Track, AnalysisResult]]:
        with Progress(
            SpinnerColumn(),
            *Progress.get_default_columns(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=rich_console,
            transient=True,
        ) as progress:
            pbar = progress.add_task("Analyzing...", total=len(self.files))

            def on_update(update: StageUpdate) -> None:
                if update.failed:
                    logging.info(f"{update.track_id[:12]}: {update.stage.value} failed ({update.error.kind.value})")

            def on_done(track: Track, result: AnalysisResult | None) -> None:
                progress.update(pbar, advance=1, description=f'Analyzed "{Path(track.path).name}"')

            self.rows = self.planner.analyze_many(self.files, on_update=on_update, on_done=on_done)
        return self.rows

    def run(self):
        rows = self.analyze()
        if not rows:
            print_status("No tracks could be analyzed.", "error")
            return

        rich_console.print(analysis_table(rows))
        if self.output_dir is not None:
            out_dir = mk_outputdir(self.path, self.output_dir)
            for track, result in rows:
                out_path = export_analysis(track, result, out_dir)
                logging.info(f'Wrote "{out_path}"')
            print_status(f'Wrote {len(rows)} analysis file(s) to "{out_dir}"', "success")


def export_analysis(track: Track, result: AnalysisResult, output_dir: str | Path) -> Path:
    out_path = Path(output_dir) / f"{Path(track.path).stem}.analysis.json"
    payload = {
        "track": {"id": track.track_id, "path": track.path, "artist": track.artist, "title": track.title},
        "analysis": result.to_dict(),
    }
    out_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    return out_path


class SimilarityHandler(AnalysisHandler):
    """Ranks the tracks of a directory against one reference track."""

    def __init__(self, *, track: str, limit: int = 10, **kwargs):
        super().__init__(**kwargs)
        self.reference = os.path.abspath(track)
        self.limit = limit
        if self.reference not in self.files:
            self.files.insert(0, self.reference)

    def run(self):
        rows = self.analyze()
        reference_id = compute_content_hash(self.reference)
        if not any(track.track_id == reference_id for track, _ in rows):
            raise FileNotFoundError(f'Reference track "{self.reference}" could not be analyzed.')

        scores = self.planner.find_similar(reference_id, self.limit)
        print_header("Similar tracks", f"Reference: {Path(self.reference).name}")
        rich_console.print(similarity_table(scores, self.planner.tracks))


class PlanHandler(AnalysisHandler):
    """Analyzes a directory and prints an ordered set."""

    def __init__(
        self,
        *,
        mode: str,
        start: str | None = None,
        end: str | None = None,
        export_json: str | None = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.mode = SetMode.parse(mode)
        self.start = os.path.abspath(start) if start else None
        self.end = os.path.abspath(end) if end else None
        self.export_json = export_json
        for extra in (self.start, self.end):
            if extra is not None and extra not in self.files:
                self.files.append(extra)

    def run(self):
        rows = self.analyze()
        if not rows:
            print_status("No tracks could be analyzed.", "error")
            return

        start_id = compute_content_hash(self.start) if self.start else None
        end_id = compute_content_hash(self.end) if self.end else None
        plan = self.planner.plan(self.mode, [t.track_id for t, _ in rows], start_id, end_id)

        print_header("Set plan", f"{len(plan.ordered_tracks)} tracks, {self.mode.display_name}")
        results = {result.track_id: result for _, result in rows}
        rich_console.print(set_plan_table(plan, self.planner.tracks, results))
        print_plan_summary(plan, self.mode.display_name)

        if self.export_json is not None:
            payload = {
                "mode": self.mode.value,
                "tracks": [self.planner.tracks[t].path for t in plan.ordered_tracks],
                "transitions": [
                    {
                        "from": self.planner.tracks[t.from_track_id].path,
                        "to": self.planner.tracks[t.to_track_id].path,
                        "score": t.score,
                        "explanation": t.explanation,
                        "bpm_delta": t.bpm_delta,
                        "key_relation": t.key_relation,
                        "energy_delta": t.energy_delta,
                        "mix_out": t.mix_out.to_dict() if t.mix_out is not None else None,
                        "mix_in": t.mix_in.to_dict() if t.mix_in is not None else None,
                    }
                    for t in plan.transitions
                ],
                "total_score": plan.total_score,
                "average_transition_score": plan.average_transition_score,
                "energy_flow": list(plan.energy_flow),
            }
            Path(self.export_json).write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
            print_status(f'Set plan written to "{self.export_json}"', "success")
