"""CLI entrypoint: Typer app definition and command registration"""

import typer

from mdsite.cli.commands import build_cmd, image_cmd, render_cmd, tags_cmd


app = typer.Typer(name="mdsite", no_args_is_help=True, help="Static site content build pipeline")

app.command(name="build")(build_cmd)
app.command(name="render")(render_cmd)
app.command(name="tags")(tags_cmd)
app.command(name="image")(image_cmd)
