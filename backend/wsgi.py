# backend/wsgi.py
from sarupaa import create_app

app = create_app()
