# backend/wsgi.py
from flowstock import create_app

app = create_app()
