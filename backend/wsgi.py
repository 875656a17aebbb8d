# backend/wsgi.py
from wardrobe import create_app

app = create_app()
