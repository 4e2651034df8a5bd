"""Sphinx configuration for the Mailtrack API reference."""

import os
import sys
from datetime import datetime

sys.path.insert(0, os.path.abspath(".."))

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REDIS_URL", "memory://")

project = "Mailtrack API"
copyright = f"{datetime.now().year}, Mailtrack"
author = "Mailtrack Team"

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.napoleon",
]

autodoc_member_order = "bysource"
napoleon_google_docstring = True

templates_path = ["_templates"]
exclude_patterns: list[str] = ["_build"]

html_theme = "alabaster"
