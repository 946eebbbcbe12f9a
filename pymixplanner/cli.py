import functools
import logging
import os
import warnings

import rich_click as click
from rich.logging import RichHandler
from rich.traceback import install as rich_traceback_handler
from rich_click.patch import patch as rich_click_patch

rich_click_patch()
from click_option_group import optgroup

from pymixplanner import __version__
from pymixplanner.console import _COMMAND_GROUPS, _OPTION_GROUPS, rich_console
from pymixplanner.exceptions import MixPlannerError
from pymixplanner.handler import AnalysisHandler, PlanHandler, SimilarityHandler

# CLI --help styling
click.rich_click.OPTION_GROUPS = _OPTION_GROUPS
click.rich_click.COMMAND_GROUPS = _COMMAND_GROUPS
click.rich_click.USE_RICH_MARKUP = True
# End CLI styling


@click.group("pymixplanner")
@click.option("--debug", "-d", is_flag=True, default=False, help="Enables debugging mode.")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enables verbose logging output.")
@click.version_option(__version__, prog_name="pymixplanner", message="%(prog)s %(version)s")
def cli_main(debug, verbose):
    """Analyze DJ tracks, find compatible tracks and plan the order of a set."""
    # Store flags in environ instead of passing them as parameters
    if debug:
        os.environ["PMP_DEBUG"] = "1"
        warnings.simplefilter("default")
        rich_traceback_handler(console=rich_console, suppress=[click])
    else:
        warnings.filterwarnings("ignore")

    if verbose:
        os.environ["PMP_VERBOSE"] = "1"

    if verbose:
        logging.basicConfig(format="%(message)s", level=logging.INFO, handlers=[RichHandler(level=logging.INFO, console=rich_console, rich_tracebacks=True, show_path=debug, show_time=False, tracebacks_suppress=[click])])
    else:
        logging.basicConfig(format="%(message)s", level=logging.ERROR, handlers=[RichHandler(level=logging.ERROR, console=rich_console, show_time=False, show_path=False)])


def common_path_options(f):
    @optgroup.group("audio path", help="the audio track(s) to load")
    @optgroup.option("--path", type=click.Path(exists=True), required=True, help="Path to an audio file or a directory of audio files.")
    @optgroup.option("--recursive", "-r", is_flag=True, default=False, help="Process directories recursively.")

    @functools.wraps(f)
    def wrapper_common_options(*args, **kwargs):
        return f(*args, **kwargs)

    return wrapper_common_options


def common_analysis_options(f):
    @click.option("--workers", "-w", type=click.IntRange(min=1), default=None, help="Number of tracks analyzed in parallel. [dim](default: $PMP_WORKERS or the CPU count)[/]")
    @click.option("--model", type=str, default=None, help="Embedding model factory as [cyan]module:callable[/]; the callable returns a model mapping a 128x199 spectrogram to 512 floats. [dim](embeddings are skipped without one)[/]")

    @functools.wraps(f)
    def wrapper_common_options(*args, **kwargs):
        return f(*args, **kwargs)

    return wrapper_common_options


@cli_main.command()
@common_path_options
@common_analysis_options
@click.option("--output-dir", "-o", type=click.Path(exists=False, writable=True, file_okay=False), default=None, help="Write one <name>.analysis.json file per track to this directory.")
def analyze(**kwargs):
    """Analyze tempo, key, energy, loudness, sections, cue points and embeddings."""
    run_handler(AnalysisHandler, **kwargs)


@cli_main.command()
@common_path_options
@common_analysis_options
@click.option("--track", "-t", type=click.Path(exists=True, dir_okay=False), required=True, help="The reference track to compare against.")
@click.option("--limit", "-n", type=click.IntRange(min=1), default=10, show_default=True, help="Number of similar tracks to show.")
def similar(**kwargs):
    """Rank tracks by how well they mix with a reference track."""
    run_handler(SimilarityHandler, **kwargs)


@cli_main.command()
@common_path_options
@common_analysis_options
@click.option("--mode", "-m", type=click.Choice(("warm-up", "peak-time", "open-format"), case_sensitive=False), default="open-format", show_default=True, help="Energy progression of the set.")
@click.option("--start", type=click.Path(exists=True, dir_okay=False), default=None, help="Track to open the set with.")
@click.option("--end", type=click.Path(exists=True, dir_okay=False), default=None, help="Track to close the set with.")
@click.option("--export-json", type=click.Path(dir_okay=False, writable=True), default=None, help="Write the planned set to a JSON file.")
def plan(**kwargs):
    """Order tracks into a set with explained transitions."""
    run_handler(PlanHandler, **kwargs)


def run_handler(handler_cls, **kwargs):
    try:
        handler_cls(**kwargs).run()
    except KeyboardInterrupt:
        rich_console.print("\n[red]Operation cancelled.[/]")
    except (MixPlannerError, Exception) as e:
        print_exception(e)


def print_exception(e: Exception):
    if "PMP_DEBUG" in os.environ:
        rich_console.print_exception(suppress=[click])
    else:
        logging.error(e)


if __name__ == "__main__":
    cli_main()
