"""CLI entrypoint: Typer app definition and command registration"""

import typer

from mdillustrate.cli.commands import (
    backup_cmd,
    blocks_cmd,
    clear_cmd,
    generate_cmd,
    init_cmd,
    plan_cmd,
    regenerate_cmd,
    undo_cmd,
)


app = typer.Typer(name="mdillustrate", no_args_is_help=True, help="AI summary images for Markdown notes")

app.command(name="generate")(generate_cmd)
app.command(name="plan")(plan_cmd)
app.command(name="undo")(undo_cmd)
app.command(name="clear")(clear_cmd)
app.command(name="regenerate")(regenerate_cmd)
app.command(name="blocks")(blocks_cmd)
app.command(name="backup")(backup_cmd)
app.command(name="init")(init_cmd)
