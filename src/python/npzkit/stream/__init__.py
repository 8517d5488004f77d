"""Pull-based streaming of NPY entries: element producers and the archive stream."""
from .sources import ArraySource, ElementProducer, IterSource
from .writers import NpyStreamSource, write_entry
