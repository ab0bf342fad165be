"""gh-trs: publish workflow metadata as a GA4GH TRS API on GitHub Pages."""

__version__ = "1.1.0"
