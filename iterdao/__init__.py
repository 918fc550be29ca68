"""
IterDAO Governance Package

Core imports are lazily loaded so that importing a submodule does not
pull in the whole engine:

    from iterdao.governance import Governance, VoteSide
    from iterdao.config import load_config
    from iterdao.exceptions import GovernanceError
"""

__version__ = "0.1.0"


def __getattr__(name):
    """Lazy module loading."""
    if name == 'Governance':
        from .governance import Governance
        return Governance
    elif name == 'load_config':
        from .config import load_config
        return load_config
    elif name == 'GovernanceError':
        from .exceptions import GovernanceError
        return GovernanceError
    raise AttributeError(f"module 'iterdao' has no attribute {name!r}")

__all__ = ['Governance', 'load_config', 'GovernanceError']
