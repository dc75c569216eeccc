"""
Nekovibe - brand-intelligence backend.

Collects Google reviews, press articles, LinkedIn posts and web-search
insights about Neko Health clinics, stores them in Supabase, generates
rolling summaries and answers free-text questions over the collected
feedback.
"""

__version__ = "1.0.0"
