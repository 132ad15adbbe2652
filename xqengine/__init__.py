"""xqengine: a Xiangqi (Chinese chess) move-search engine."""

__version__ = "0.1.0"
