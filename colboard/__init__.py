# Column board: in-memory board editing, remote snapshot sync, import/export
#
# Components:
#   schema.py    - Data model (Item, Column, Side, Direction) and id generation
#   board.py     - Board mutation rules and the BoardStore state holder
#   clipboard.py - Best-effort clipboard hand-off
#   remote.py    - Remote snapshot stores (SQLite, HTTP, in-memory)
#   sync.py      - Persistence bridge: session load, auto-save, manual save
#   transfer.py  - Snapshot export/import with document validation
#   notify.py    - User-visible notices
#   config.py    - YAML configuration
