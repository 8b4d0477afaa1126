import json
from dataclasses import asdict, replace
from pathlib import Path
import typer

from .config import POLARITIES, RecognitionConfig
from .detectors.color import calibrate as calibrate_color
from .errors import RecognitionError
from .imaging import read_image
from .logger import setup_logger
from .pipeline import RecognitionPipeline
from .types import Region

app = typer.Typer(help="Recognize candlesticks in chart screenshots.")


def _load_config(config: Path | None, polarity: str | None = None) -> RecognitionConfig:
    cfg = RecognitionConfig.load_from_file(config) if config else RecognitionConfig()
    if polarity:
        if polarity not in POLARITIES:
            raise typer.BadParameter(f"polarity must be one of {POLARITIES}")
        cfg = cfg.with_color(replace(cfg.color, polarity=polarity))
    return cfg


def _parse_regions(values: list[str]) -> list[Region]:
    try:
        return [Region.parse(v) for v in values]
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e


def _emit(payload) -> None:
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


@app.command()
def recognize(
    path: Path,
    region: list[str] = typer.Option(..., "--region", "-r", help="x,y,width,height; repeatable"),
    config: Path | None = typer.Option(None, "--config", "-c", help="JSON config file"),
    polarity: str | None = typer.Option(None, help="green_up or red_up"),
    log_level: str = typer.Option("WARNING", "--log-level"),
):
    """Recognize the candles inside the given regions."""
    setup_logger(level=log_level)
    regions = _parse_regions(region)
    try:
        cfg = _load_config(config, polarity)
        results = RecognitionPipeline().recognize_batch(read_image(path), regions, cfg)
    except (RecognitionError, ValueError, OSError) as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=2)
    _emit([r.to_dict() for r in results])
    if not any(r.ok for r in results):
        raise typer.Exit(code=1)


@app.command()
def detect(
    path: Path,
    config: Path | None = typer.Option(None, "--config", "-c"),
    polarity: str | None = typer.Option(None, help="green_up or red_up"),
    log_level: str = typer.Option("WARNING", "--log-level"),
):
    """Locate every candle in a chart screenshot and recognize it."""
    setup_logger(level=log_level)
    try:
        cfg = _load_config(config, polarity)
        results = RecognitionPipeline().auto_detect_and_recognize(read_image(path), cfg)
    except (RecognitionError, ValueError, OSError) as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=2)
    _emit([r.to_dict() for r in results])


@app.command()
def calibrate(
    path: Path,
    region: str | None = typer.Option(None, "--region", "-r", help="x,y,width,height"),
    config: Path | None = typer.Option(None, "--config", "-c"),
):
    """Print color tolerances derived from the image's HSV spread."""
    area = _parse_regions([region])[0] if region else None
    try:
        cfg = _load_config(config)
        color = calibrate_color(read_image(path), cfg, area)
    except (RecognitionError, ValueError, OSError) as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=2)
    _emit(asdict(color))


@app.command("default-config")
def default_config(
    output: Path | None = typer.Option(None, "--output", "-o", help="write to file"),
):
    """Print (or save) the default configuration as JSON."""
    cfg = RecognitionConfig()
    if output:
        cfg.save_to_file(output)
        typer.echo(f"wrote {output}")
    else:
        _emit(cfg.to_dict())


if __name__ == "__main__":
    app()
