from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from ..config import InputConfig, OutputConfig, RotationConfig, VoxelizeConfig, load_config
from ..core.exporter import read_voxels
from ..core.utils import ProgressReporter
from ..examples.synthetic import generate_scene
from ..runtime.builders import classify_input
from ..sdk.run import VoxelizeRunResult, voxelize_from_config

app = typer.Typer(help="shellvox voxelization utilities")
mesh_app = typer.Typer(help="Synthetic scene helpers")
app.add_typer(mesh_app, name="mesh")

console = Console(stderr=True)


def _configure_logging(level: str) -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=numeric, format="[%(levelname)s] %(message)s")
    logging.getLogger("shellvox").setLevel(numeric)


class _RichProgress:
    """Adapts a rich Progress task to the voxelizer's progress observer."""

    def __init__(self, progress: Progress, description: str) -> None:
        self._progress = progress
        self._description = description
        self._task = None

    def start(self, total: int) -> None:
        if self._task is None:
            self._task = self._progress.add_task(self._description, total=total)
        else:
            self._progress.reset(self._task, total=total)

    def advance(self, steps: int = 1) -> None:
        if self._task is not None:
            self._progress.advance(self._task, steps)


@contextmanager
def _progress(enabled: bool, description: str) -> Iterator[Optional[ProgressReporter]]:
    if not enabled:
        yield None
        return
    with Progress(
        SpinnerColumn(),
        TextColumn("{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        yield _RichProgress(progress, description)


def _echo_result(result: VoxelizeRunResult) -> None:
    stats = result.stats
    typer.echo(
        f"Completed {stats['voxels']} voxels from {stats['samples']} samples "
        f"({stats['inputs']} {'meshes' if stats['kind'] == 'mesh' else 'points'}) → {result.output_path}"
    )


@app.command("voxelize")
def voxelize(
    input: Path = typer.Option(..., "--input", "-i", exists=True, dir_okay=False, readable=True, help="Mesh (.gltf/.glb/.obj/.stl/.off) or point cloud (.ply/.las/.laz)."),
    output: Path = typer.Option(..., "--output", "-o", help="Output voxel file."),
    resolution: float = typer.Option(..., "--resolution", "-r", help="Grid spacing in scene units."),
    x_rotation: Optional[float] = typer.Option(None, "--x-rotation", "-x", help="Rotation about x in degrees."),
    y_rotation: Optional[float] = typer.Option(None, "--y-rotation", "-y", help="Rotation about y in degrees."),
    z_rotation: Optional[float] = typer.Option(None, "--z-rotation", "-z", help="Rotation about z in degrees."),
    workers: int = typer.Option(1, "--workers", help="Threads used for the mesh scan; output is identical for any count."),
    swap_yz: bool = typer.Option(True, "--swap-yz/--no-swap-yz", help="Exchange y and z of point clouds."),
    show_progress: bool = typer.Option(True, "--progress/--no-progress", help="Show a progress bar."),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level (e.g. INFO, DEBUG)."),
) -> None:
    """Voxelize a mesh scene or point cloud into a voxel file."""

    if not resolution > 0:
        raise typer.BadParameter("resolution must be positive.", param_hint="--resolution")
    if workers < 1:
        raise typer.BadParameter("workers must be at least 1.", param_hint="--workers")
    try:
        classify_input(input)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--input") from exc

    _configure_logging(log_level)

    rotation = None
    if any(a is not None for a in (x_rotation, y_rotation, z_rotation)):
        rotation = RotationConfig(
            x_deg=x_rotation or 0.0,
            y_deg=y_rotation or 0.0,
            z_deg=z_rotation or 0.0,
        )
    cfg = VoxelizeConfig(
        input=InputConfig(path=input.resolve(), swap_yz=swap_yz),
        output=OutputConfig(path=output.resolve()),
        resolution=resolution,
        rotation=rotation,
        workers=workers,
    )
    with _progress(show_progress, "[cyan]voxelize[/]") as progress:
        result = voxelize_from_config(cfg, progress=progress)
    _echo_result(result)


@app.command("run")
def run(
    config: Path = typer.Argument(..., exists=True, readable=True, help="Path to YAML configuration file."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Override output voxel file."),
    resolution: Optional[float] = typer.Option(None, "--resolution", "-r", help="Override grid spacing."),
    workers: Optional[int] = typer.Option(None, "--workers", help="Override scan thread count."),
    show_progress: bool = typer.Option(True, "--progress/--no-progress", help="Show a progress bar."),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level (e.g. INFO, DEBUG)."),
) -> None:
    """Run a voxelization scenario specified by a YAML config."""

    if resolution is not None and not resolution > 0:
        raise typer.BadParameter("resolution must be positive.", param_hint="--resolution")
    if workers is not None and workers < 1:
        raise typer.BadParameter("workers must be at least 1.", param_hint="--workers")
    _configure_logging(log_level)
    try:
        cfg = load_config(config)
        classify_input(cfg.input.path)
    except (ValueError, ValidationError) as exc:
        raise typer.BadParameter(str(exc), param_hint="CONFIG") from exc

    with _progress(show_progress, "[cyan]voxelize[/]") as progress:
        result = voxelize_from_config(
            cfg,
            output=output.resolve() if output is not None else None,
            resolution=resolution,
            workers=workers,
            progress=progress,
        )
    _echo_result(result)


@app.command("inspect")
def inspect(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Voxel file to summarize."),
) -> None:
    """Print the voxel count and coordinate bounds of a voxel file."""

    try:
        voxels = read_voxels(path)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="PATH") from exc
    typer.echo(f"{len(voxels)} voxels")
    if len(voxels):
        lo = voxels.coords.min(axis=0).tolist()
        hi = voxels.coords.max(axis=0).tolist()
        typer.echo(f"min {tuple(lo)} max {tuple(hi)}")


@mesh_app.command("generate")
def mesh_generate(
    output: Path = typer.Argument(..., help="Output scene path (.glb)."),
    preset: str = typer.Option("cube", "--preset", help="Synthetic scene preset (cube, ramp)."),
    size: float = typer.Option(4.0, "--size", help="Scene extent scaling factor."),
    textured: bool = typer.Option(False, "--textured", help="Embed a checker texture and UVs."),
) -> None:
    """Generate a synthetic glTF scene useful for voxelization demos."""

    if output.suffix.lower() != ".glb":
        raise typer.BadParameter("Output must end with .glb", param_hint="OUTPUT")
    out = output.resolve()
    try:
        generate_scene(preset=preset, size=size, path=out, textured=textured)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--preset") from exc
    typer.echo(f"Wrote synthetic scene to {out}")


def main() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
