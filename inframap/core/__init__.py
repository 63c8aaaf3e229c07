# Lazy imports so `from inframap.core.model import Server` does not pull in
# the collectors, httpx or the renderer.

__all__ = [
    # Model
    "Infrastructure",
    "Server",
    "Service",
    # Pipeline
    "collect_infrastructure",
    "validate_sources",
    "default_registry",
    "merge",
    # Rendering
    "D2Renderer",
    "render_d2",
    "export_diagram",
    # Config
    "AppConfig",
    "load_config",
]

_IMPORT_MAP = {
    "Infrastructure": ".model",
    "Server": ".model",
    "Service": ".model",
    "collect_infrastructure": ".collectors",
    "validate_sources": ".collectors",
    "default_registry": ".collectors",
    "merge": ".collectors",
    "D2Renderer": ".diagrams",
    "render_d2": ".diagrams",
    "export_diagram": ".diagrams",
    "AppConfig": ".config",
    "load_config": ".config",
}


def __getattr__(name):
    if name in _IMPORT_MAP:
        import importlib
        module = importlib.import_module(_IMPORT_MAP[name], __package__)
        return getattr(module, name)
    raise AttributeError(f"module 'inframap.core' has no attribute {name}")
