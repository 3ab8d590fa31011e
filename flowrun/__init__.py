"""
flowrun

Executes directed step graphs: HTTP requests, expression transforms and
natural-language filters, with data flowing along the connections.
"""
__version__ = "0.1.0"
