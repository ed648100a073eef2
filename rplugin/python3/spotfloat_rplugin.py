from spotfloat.interfaces.plugin import SpotfloatPlugin  # noqa: F401
