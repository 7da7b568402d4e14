# backend/wsgi.py
from tailorpos import create_app

app = create_app()
