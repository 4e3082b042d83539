"""
QDAO Governance Package

Core imports are lazily loaded so that importing a submodule does not pull
in storage or configuration dependencies it does not need.
For direct module access, import from submodules:

    from qdao.governance import GovernanceEngine, GovernanceParameters
    from qdao.database_sqlite import StateStore
    from qdao.config import load_config
"""

__version__ = "1.0.0"


def __getattr__(name):
    """Lazy module loading."""
    if name == 'GovernanceEngine':
        from .governance import GovernanceEngine
        return GovernanceEngine
    elif name == 'GovernanceParameters':
        from .governance import GovernanceParameters
        return GovernanceParameters
    elif name == 'StateStore':
        from .database_sqlite import StateStore
        return StateStore
    elif name == 'load_config':
        from .config import load_config
        return load_config
    raise AttributeError(f"module 'qdao' has no attribute {name!r}")

__all__ = ['GovernanceEngine', 'GovernanceParameters', 'StateStore', 'load_config']
