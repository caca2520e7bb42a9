"""envtree - hierarchical resolution for development environments.

Organizes workspaces in an Ecosystem -> Domain -> App -> Workspace tree,
resolves targets from partial name filters and computes effective settings
(theme, build credentials) by cascading overrides up the tree.
"""

__version__ = "0.4.0"
