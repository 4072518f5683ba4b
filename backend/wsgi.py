# Overview: WSGI entry point (FLASK_APP=wsgi.py).

from bms import create_app

app = create_app()
