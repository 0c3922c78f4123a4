# backend/modules/establishments/__init__.py

"""
Establishment registry.

The establishment catalogue (drafts, moderation, media, search) is owned by
another part of the platform. This module maps the columns the reviews core
needs: the publication status that decides review eligibility, the partner
who owns the listing, and the rating summary fields the reviews core writes.
"""
