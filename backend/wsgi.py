# backend/wsgi.py
from bookstock import create_app

app = create_app()
