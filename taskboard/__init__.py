# Board sync: a server-authoritative board mirror with drag-and-drop card moves
#
# Components:
#   schema.py     - Data model (Board, Section, Card, Comment, UserLite, Priority)
#   client.py     - HTTP client for the board API and its error types
#   store.py      - BoardStore (in-memory mirror + mutations) and BoardContext
#   events.py     - Change notifications for store subscribers
#   drag.py       - Drag-end reconciliation into card moves
#   view.py       - Filter/sort projection for presentation
#   repository.py - SQLite persistence for the board server
#   server.py     - Flask JSON API implementing the board contract
#   config.py     - YAML + environment configuration
#   cli.py        - Command line entry point

__version__ = "0.1.0"
