"""Sphinx configuration for the voucher-pipeline API reference."""

import os
import sys

sys.path.insert(0, os.path.abspath("../src"))

project = "voucher-pipeline"
author = "voucher-pipeline contributors"
release = "0.1.0"
version = ".".join(release.split(".")[:2])

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.autosummary",
    "sphinx.ext.napoleon",
    "sphinx.ext.viewcode",
    "sphinx.ext.intersphinx",
]

exclude_patterns = ["_build"]

html_title = "voucher-pipeline"
html_theme = "alabaster"

# -- API reference ------------------------------------------------------------
autosummary_generate = True
autodoc_default_options = {
    "members": True,
    "show-inheritance": True,
}
autodoc_member_order = "groupwise"
autodoc_typehints = "description"
# Only the workbook adapter and the config loader need third-party imports.
autodoc_mock_imports = ["openpyxl", "dataconf"]

napoleon_google_docstring = True
napoleon_numpy_docstring = False

intersphinx_mapping = {
    "python": ("https://docs.python.org/3", None),
    "openpyxl": ("https://openpyxl.readthedocs.io/en/stable", None),
}
