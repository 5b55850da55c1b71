"""Download the Digitale Kadastrale Kaart (DKK) in vector format, clipped to a polygon.

Examples:
  dkkdownload "POLYGON((190000 443000, 191000 443000, 191000 444000, 190000 443000))" perceel pand -o dkk.zip
  dkkdownload -f area.wkt perceel kadastralegrens openbareruimtelabel --progress > dkk.zip
"""

import logging
from pathlib import Path
from typing import List, Optional

import typer

from dkkdownload import __version__
from dkkdownload.core.config import get_settings
from dkkdownload.core.logging import configure_logging
from dkkdownload.schemas import ExportRequest
from dkkdownload.services.download import DownloadPipeline, open_output_sink
from dkkdownload.services.geofilter import load_geofilter
from dkkdownload.services.polling import ExportJobRunner
from dkkdownload.services.progress import ConsoleProgressReporter, ProgressReporter
from dkkdownload.services.remote import ExportApiClient, build_http_client

logger = logging.getLogger("dkkdownload.cli")

cli = typer.Typer(
    add_completion=False,
    help="Download the DKK as a GML ZIP archive through the PDOK DKK download API.",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"dkkdownload {__version__}")
        raise typer.Exit()


@cli.command()
def download(
    bounding_polygon: str = typer.Argument(
        ...,
        metavar="BOUNDINGPOLYGON",
        help="Bounding Well-Known Text (WKT) polygon.",
    ),
    layers: List[str] = typer.Argument(
        ...,
        metavar="LAYERS...",
        help="Layers to download, e.g. perceel kadastralegrens pand openbareruimtelabel.",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        metavar="FILE",
        help="Path of the output ZIP file, e.g. 'output.zip'. Written to stdout when omitted.",
    ),
    polygon_is_file: bool = typer.Option(
        False,
        "--file",
        "-f",
        help="Interpret BOUNDINGPOLYGON as the path to a WKT file instead of a WKT string.",
    ),
    progress: bool = typer.Option(False, "--progress", "-p", help="Show progress on stderr."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging on stderr."),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    settings = get_settings()
    configure_logging("DEBUG" if verbose else settings.log_level)

    try:
        geofilter = load_geofilter(bounding_polygon, from_file=polygon_is_file)
        request = ExportRequest(feature_types=tuple(layers), area_filter=geofilter)
        reporter = ConsoleProgressReporter() if progress else ProgressReporter()

        with open_output_sink(output) as sink, build_http_client(settings) as http:
            client = ExportApiClient(http, settings)
            runner = ExportJobRunner(
                client,
                DownloadPipeline(client),
                reporter,
                poll_interval=settings.poll_interval_seconds,
            )
            runner.run(request, sink)
    except Exception as exc:
        logger.debug("Download failed", exc_info=exc)
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)

    if output is not None:
        logger.info("Wrote %s", output)


def run() -> None:
    cli()


if __name__ == "__main__":
    run()
