from .auth import CurrentPrincipal, get_current_principal

__all__ = ["CurrentPrincipal", "get_current_principal"]
