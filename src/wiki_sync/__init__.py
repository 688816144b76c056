"""Content synchronization engine for the wiki.

Moves pages, versions and images between the wiki store and a
git-friendly directory tree, and repairs image links afterwards.
"""

__version__ = "0.4.0"
