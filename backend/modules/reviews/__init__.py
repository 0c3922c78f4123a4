"""
Establishment reviews.

Posting, editing, soft deleting and listing reviews, the per-user daily
creation quota, and the rating summary kept on each establishment.
"""
