from nexa import create_app

app = create_app()
