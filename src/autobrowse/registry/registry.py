"""
Component Registry - Central registry for pluggable components.

Browser backends and search providers register themselves by name so
that SessionManager and SearchService can be assembled from settings
without importing concrete classes.

Example:
    >>> from autobrowse.registry import register_backend, get_backend
    >>> 
    >>> @register_backend("steel")
    >>> class SteelProvider(RemoteCDPProvider):
    ...     pass
    >>> 
    >>> provider_class = get_backend("steel")
"""

from typing import Any, Callable, Dict, List, Type, TypeVar

from autobrowse.interfaces.provider import IBrowserProvider


T = TypeVar("T")


class ComponentRegistry:
    """
    Central registry for pluggable components.
    
    Components are registered by name and retrieved for instantiation.
    Registration order is preserved, which is also the order search
    providers are fanned out in.
    """
    
    _backends: Dict[str, Type[IBrowserProvider]] = {}
    _search_providers: Dict[str, Type[Any]] = {}
    
    # ==================== Backend Registration ====================
    
    @classmethod
    def register_backend(cls, name: str) -> Callable[[Type[IBrowserProvider]], Type[IBrowserProvider]]:
        """
        Decorator to register a browser backend.
        
        Args:
            name: Unique backend name ('local', 'browserbase', 'steel')
            
        Returns:
            Decorator function
        """
        def decorator(provider_class: Type[IBrowserProvider]) -> Type[IBrowserProvider]:
            if name in cls._backends and cls._backends[name] is not provider_class:
                raise ValueError(f"Backend '{name}' is already registered")
            cls._backends[name] = provider_class
            return provider_class
        return decorator
    
    @classmethod
    def get_backend(cls, name: str) -> Type[IBrowserProvider]:
        """
        Get a registered backend class by name.
        
        Raises:
            ValueError: If the backend is not registered
        """
        if name in cls._backends:
            return cls._backends[name]
        raise ValueError(
            f"Unknown backend: '{name}'. Available backends: {list(cls._backends.keys())}"
        )
    
    @classmethod
    def list_backends(cls) -> List[str]:
        """List all registered backend names."""
        return list(cls._backends.keys())
    
    # ==================== Search Provider Registration ====================
    
    @classmethod
    def register_search_provider(cls, name: str) -> Callable[[Type[T]], Type[T]]:
        """
        Decorator to register a search provider.
        
        Args:
            name: Engine name reported on results (e.g. 'brave_api')
        """
        def decorator(provider_class: Type[T]) -> Type[T]:
            if name in cls._search_providers and cls._search_providers[name] is not provider_class:
                raise ValueError(f"Search provider '{name}' is already registered")
            cls._search_providers[name] = provider_class
            return provider_class
        return decorator
    
    @classmethod
    def get_search_provider(cls, name: str) -> Type[Any]:
        """
        Get a registered search provider class by name.
        
        Raises:
            ValueError: If the provider is not registered
        """
        if name in cls._search_providers:
            return cls._search_providers[name]
        raise ValueError(
            f"Unknown search provider: '{name}'. "
            f"Available providers: {list(cls._search_providers.keys())}"
        )
    
    @classmethod
    def list_search_providers(cls) -> List[str]:
        """List registered search provider names in registration order."""
        return list(cls._search_providers.keys())


# Convenience functions
def register_backend(name: str) -> Callable[[Type[IBrowserProvider]], Type[IBrowserProvider]]:
    """Decorator to register a browser backend."""
    return ComponentRegistry.register_backend(name)


def register_search_provider(name: str) -> Callable[[Type[T]], Type[T]]:
    """Decorator to register a search provider."""
    return ComponentRegistry.register_search_provider(name)


def get_backend(name: str) -> Type[IBrowserProvider]:
    """Get a registered backend class by name."""
    return ComponentRegistry.get_backend(name)


def get_search_provider(name: str) -> Type[Any]:
    """Get a registered search provider class by name."""
    return ComponentRegistry.get_search_provider(name)


def list_backends() -> List[str]:
    """List registered backend names."""
    return ComponentRegistry.list_backends()


def list_search_providers() -> List[str]:
    """List registered search provider names in registration order."""
    return ComponentRegistry.list_search_providers()
