from plugin_spine.cli import app

app()
