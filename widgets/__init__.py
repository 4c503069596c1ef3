"""
Sample remotes.

Each module here is what a team would deploy on its own: it exposes
`mount(context)` and talks to the rest of the storefront only through the
host context (event bus, store, query client, services). None of them import
each other.
"""
