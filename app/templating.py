"""
Jinja2 templates shared by the page routes.
"""

from fastapi.templating import Jinja2Templates

from app.config import settings

templates = Jinja2Templates(directory=settings.TEMPLATES_DIR)
