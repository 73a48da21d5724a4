# Sphinx configuration file

import os
import sys

sys.path.insert(0, os.path.abspath("../src"))

from step_orchestrator import __version__  # noqa: E402

project = "Step Orchestrator"
copyright = "2024, Step Orchestrator contributors"
author = "Step Orchestrator contributors"
release = __version__

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.napoleon",
    "sphinx.ext.viewcode",
    "sphinx.ext.intersphinx",
    "sphinx_autodoc_typehints",
]

exclude_patterns = ["_build", "Thumbs.db", ".DS_Store"]

html_theme = "sphinx_rtd_theme"

# Autodoc settings
autodoc_default_options = {
    "members": True,
    "member-order": "bysource",
    "undoc-members": False,
    "exclude-members": "__weakref__, model_config",
}
autodoc_typehints_format = "short"

# Google-style docstrings only
napoleon_google_docstring = True
napoleon_numpy_docstring = False

intersphinx_mapping = {
    "python": ("https://docs.python.org/3", None),
    "requests": ("https://requests.readthedocs.io/en/latest/", None),
    "pydantic": ("https://docs.pydantic.dev/latest/", None),
}
