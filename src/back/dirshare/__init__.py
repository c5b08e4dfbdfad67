"""dirshare: browse, preview and share a directory subtree over HTTP."""

__version__ = '0.1.0'
