from syncspine.cli.app import app

app()
