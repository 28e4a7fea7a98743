"""Daily digests of RSS and Atom feeds, rendered as RSS or HTML."""
