from mapbox_backup.cli.main import app

app()
